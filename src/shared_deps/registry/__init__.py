from .resolver import RegistryClient, resolve_versions, version_satisfies, tarball_url
from .skip_checker import MirrorSkipChecker

__all__ = ["RegistryClient", "resolve_versions", "version_satisfies", "tarball_url", "MirrorSkipChecker"]
