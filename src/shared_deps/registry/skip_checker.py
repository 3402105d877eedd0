#!/usr/bin/env python3

import logging
from typing import Optional
from urllib.parse import urljoin

import requests

from ..errors import TransferError

logger = logging.getLogger(__name__)


class MirrorSkipChecker:
    """Detects versions that another mirror already serves"""

    def __init__(self, skip_mirror_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.skip_mirror_url = skip_mirror_url
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.skip_mirror_url)

    def probe_url(self, name: str, version: str) -> str:
        base = self.skip_mirror_url.rstrip('/') + '/'
        return urljoin(base, f"{name}@{version}/package.json")

    def should_skip(self, name: str, version: str) -> bool:
        if not self.enabled:
            return False

        url = self.probe_url(name, version)
        try:
            response = self.session.head(url, allow_redirects=False, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransferError(f"Failed to check {url} for {name}@{version}: {e}", package=name, version=version)

        logger.debug(f"Skip probe {url} returned {response.status_code}")
        return 200 <= response.status_code < 300
