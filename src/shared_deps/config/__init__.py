from .manager import BuildRequest, PackageSpec, VersionSpec, ConfigManager, packages_from_package_json
from .validator import validate_build_request

__all__ = [
    "BuildRequest",
    "PackageSpec",
    "VersionSpec",
    "ConfigManager",
    "packages_from_package_json",
    "validate_build_request",
]
