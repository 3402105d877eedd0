#!/usr/bin/env python3

import os
import shutil
import logging

from ..errors import FilesystemError

logger = logging.getLogger(__name__)

class StorageManager:
    """Owns the output tree: wiping it and creating per-version directories"""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def package_directory(self, name: str, version: str) -> str:
        return os.path.join(self.output_dir, f"{name}@{version}")

    def ensure_directory(self, directory: str) -> str:
        """Create a directory and its parents; an existing directory is fine"""
        try:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create directory {directory}: {e}", directory)
        logger.debug(f"Ensured directory exists: {directory}")
        return directory

    def ensure_output_directory(self) -> str:
        return self.ensure_directory(self.output_dir)

    def ensure_package_directory(self, name: str, version: str) -> str:
        return self.ensure_directory(self.package_directory(name, version))

    def clean(self) -> bool:
        """Remove the output directory recursively. Returns False if it did not exist"""
        if self._is_protected_directory(self.output_dir):
            raise FilesystemError(f"Refusing to remove protected directory {self.output_dir}", self.output_dir)

        if not os.path.lexists(self.output_dir):
            return False

        try:
            if os.path.isdir(self.output_dir) and not os.path.islink(self.output_dir):
                shutil.rmtree(self.output_dir)
            else:
                os.remove(self.output_dir)
        except OSError as e:
            raise FilesystemError(f"Failed to remove {self.output_dir}: {e}", self.output_dir)

        logger.info(f"Removed output directory {self.output_dir}")
        return True

    def _is_protected_directory(self, directory: str) -> bool:
        """The filesystem root, the home directory and the working directory are never wiped"""
        resolved = os.path.realpath(directory)
        protected = {
            os.path.realpath(os.sep),
            os.path.realpath(os.path.expanduser("~")),
            os.path.realpath(os.getcwd()),
        }
        return resolved in protected
