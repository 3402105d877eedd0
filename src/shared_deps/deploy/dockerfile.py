#!/usr/bin/env python3

import os
import logging

from ..errors import FilesystemError

logger = logging.getLogger(__name__)

class DockerfileGenerator:
    def __init__(self, output_dir: str, base_image: str = "nginx:stable-alpine"):
        self.output_dir = output_dir
        self.base_image = base_image

    @property
    def dockerfile_path(self) -> str:
        return os.path.join(self.output_dir, "Dockerfile")

    def generate_dockerfile(self) -> str:
        # The image is built from the parent of the output directory:
        #   docker build -f <output_dir>/Dockerfile .
        served_dir = os.path.basename(os.path.normpath(self.output_dir))

        return f"""FROM {self.base_image}

# Packages mirrored by self-hosted-shared-dependencies
COPY {self.output_dir} /usr/share/nginx/html/{served_dir}

RUN printf '%s\\n' \\
    'server {{' \\
    '    listen 80;' \\
    '    root /usr/share/nginx/html;' \\
    '    location / {{' \\
    '        add_header Access-Control-Allow-Origin "*" always;' \\
    '        add_header Cache-Control "public, max-age=31536000, immutable";' \\
    '        try_files $uri $uri/ =404;' \\
    '    }}' \\
    '}}' > /etc/nginx/conf.d/default.conf

EXPOSE 80
"""

    def write(self) -> str:
        content = self.generate_dockerfile()
        try:
            with open(self.dockerfile_path, 'w') as f:
                f.write(content)
        except OSError as e:
            raise FilesystemError(f"Failed to write {self.dockerfile_path}: {e}", self.dockerfile_path)

        logger.info(f"Wrote {self.dockerfile_path}")
        return self.dockerfile_path
