#!/usr/bin/env python3

import logging
from typing import Dict, List, Any, Optional, Sequence
from urllib.parse import quote

import nodesemver
import requests

from ..config.manager import VersionSpec, DEFAULT_REGISTRY_URL
from ..errors import TransferError, ResolutionError

logger = logging.getLogger(__name__)


class RegistryClient:
    """Fetches package documents from an npm-compatible registry"""

    def __init__(self, registry_url: str = DEFAULT_REGISTRY_URL, session: Optional[requests.Session] = None,
                 username: Optional[str] = None, password: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.registry_url = registry_url.rstrip('/')
        self.session = session or requests.Session()
        self.auth = (username, password) if username else None
        self.timeout = timeout

    def package_url(self, name: str) -> str:
        # Scoped packages keep their "@" but the separating slash is escaped
        return f"{self.registry_url}/{quote(name, safe='@')}"

    def fetch_metadata(self, name: str) -> Dict[str, Any]:
        url = self.package_url(name)
        logger.debug(f"Fetching registry metadata from {url}")
        try:
            response = self.session.get(
                url,
                headers={'Accept': 'application/json'},
                auth=self.auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
            metadata = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TransferError(f"Failed to fetch metadata for {name}: {e}", package=name)

        if not isinstance(metadata, dict) or not isinstance(metadata.get('versions'), dict):
            raise ResolutionError(f"Registry document for {name} has no versions", package=name)

        return metadata


def version_satisfies(version: str, spec: VersionSpec) -> bool:
    """npm matching; an exact spec is a range that names one version.

    Registry keys that are not valid semver never match.
    """
    try:
        return bool(nodesemver.satisfies(version, spec.range, False))
    except ValueError:
        logger.debug(f"Ignoring unparseable version {version!r} for range {spec.range!r}")
        return False


def resolve_versions(metadata: Dict[str, Any], specs: Sequence[VersionSpec]) -> List[str]:
    """Published versions satisfying at least one spec, in registry order"""
    return [
        version for version in metadata.get('versions', {})
        if any(version_satisfies(version, spec) for spec in specs)
    ]


def tarball_url(metadata: Dict[str, Any], version: str) -> str:
    try:
        return metadata['versions'][version]['dist']['tarball']
    except (KeyError, TypeError):
        name = metadata.get('name')
        raise ResolutionError(f"No tarball listed for {name}@{version}", package=name, version=version)
