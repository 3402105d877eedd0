#!/usr/bin/env python3

"""
Shape checks for a raw build request.

Every check is pure: nothing here touches the filesystem or the network, so
an invalid request fails before the build has any side effects.
"""

import os
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import nodesemver

from ..errors import ValidationError
from .manager import BuildRequest, PackageSpec, VersionSpec, DEFAULT_REGISTRY_URL

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "warn", "fatal")

# Accepted spellings for each option; the first one is used in error messages
OPTION_ALIASES = {
    'output_dir': ('outputDir', 'output_dir'),
    'clean': ('clean',),
    'absolute_dir': ('absoluteDir', 'absolute_dir'),
    'log_level': ('logLevel', 'log_level'),
    'skip_mirror_url': ('skipMirrorUrl', 'skipPackagesAtUrl', 'skip_mirror_url'),
    'generate_deployment_file': ('generateDeploymentFile', 'generateDockerfile', 'generate_deployment_file'),
    'registry_url': ('registry', 'registryUrl', 'registry_url'),
    'registry_username': ('registryUsername', 'registry_username'),
    'registry_password': ('registryPassword', 'registry_password'),
    'max_concurrent_packages': ('maxConcurrentPackages', 'max_concurrent_packages'),
    'download_timeout': ('downloadTimeout', 'download_timeout'),
}


def _option(raw: Mapping[str, Any], name: str) -> Tuple[str, Any]:
    aliases = OPTION_ALIASES[name]
    for alias in aliases:
        value = raw.get(alias)
        if value is not None:
            return alias, value
    return aliases[0], None


def _is_string_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value)


def _is_valid_semver(version: str) -> bool:
    try:
        return nodesemver.parse(version, False) is not None
    except ValueError:
        return False


def _check_bool(raw: Mapping[str, Any], name: str) -> bool:
    key, value = _option(raw, name)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(key, "option must be a boolean")
    return value


def _check_optional_string(raw: Mapping[str, Any], name: str) -> Optional[str]:
    key, value = _option(raw, name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(key, "must be a string")
    return value


def _check_filters(holder: Mapping[str, Any], path: str, label: str) -> Dict[str, Optional[Tuple[str, ...]]]:
    filters = {}
    for key in ('include', 'exclude'):
        if key in holder:
            if not _is_string_list(holder[key]):
                raise ValidationError(f"Invalid package {label} - {path}.{key}", "must be an array of strings, if defined")
            filters[key] = tuple(holder[key])
        else:
            filters[key] = None
    return filters


def _check_version(version: Any, package_label: str, i: int, j: int) -> VersionSpec:
    path = f"packages[{i}].versions[{j}]"
    if isinstance(version, str):
        return VersionSpec(range=version)

    if not isinstance(version, Mapping):
        raise ValidationError(
            f"Invalid package {package_label} at index {i} - invalid version at index {j}",
            "- must be a string or object",
        )

    exact = version.get('version')
    if not isinstance(exact, str) or not _is_valid_semver(exact):
        raise ValidationError(f"Invalid package {package_label} - {path}.version", "must be a valid semver string")

    filters = _check_filters(version, path, package_label)
    return VersionSpec(range=exact, exact=True, include=filters['include'], exclude=filters['exclude'])


def _check_package(package: Any, i: int) -> PackageSpec:
    if not isinstance(package, Mapping):
        raise ValidationError(f"Invalid package at index {i}", "- must be an object")

    name = package.get('name')
    if not isinstance(name, str):
        raise ValidationError(f"Invalid package at index {i}", "- package.name must be a string")

    versions = package.get('versions')
    if not isinstance(versions, (list, tuple)):
        raise ValidationError(f"Invalid package {name} at index {i}", "- package.versions must be an array")

    version_specs = tuple(_check_version(version, name, i, j) for j, version in enumerate(versions))
    filters = _check_filters(package, f"packages[{i}]", name)

    return PackageSpec(
        name=name,
        versions=version_specs,
        include=filters['include'],
        exclude=filters['exclude'],
    )


def validate_build_request(raw: Any) -> BuildRequest:
    """Check a raw build request and return the normalized BuildRequest.

    Raises ValidationError describing the first violated constraint.
    """
    if isinstance(raw, BuildRequest):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError("config", "must be an object")

    output_key, output_dir = _option(raw, 'output_dir')
    if output_dir is None or output_dir == "":
        output_dir = "npm"
    if not isinstance(output_dir, str):
        raise ValidationError(output_key, "must be a string")

    packages = raw.get('packages')
    if not isinstance(packages, (list, tuple)):
        raise ValidationError("Invalid packages option", "- must be array")

    clean = _check_bool(raw, 'clean')
    absolute_dir = _check_bool(raw, 'absolute_dir')

    if clean and os.path.isabs(output_dir) and not absolute_dir:
        raise ValidationError(
            output_key,
            "may not be an absolute path when clean is true, as a precaution against "
            "unintentional deletion of important directories. To bypass this precaution, "
            "set absoluteDir: true in your config",
        )

    log_key, log_level = _option(raw, 'log_level')
    if log_level and log_level not in LOG_LEVELS:
        raise ValidationError(log_key, 'must be one of the following: "debug", "warn", "fatal"')

    skip_mirror_url = _check_optional_string(raw, 'skip_mirror_url') or None
    generate_deployment_file = _check_bool(raw, 'generate_deployment_file')
    registry_url = _check_optional_string(raw, 'registry_url') or DEFAULT_REGISTRY_URL
    registry_username = _check_optional_string(raw, 'registry_username')
    registry_password = _check_optional_string(raw, 'registry_password')

    concurrency_key, max_concurrent = _option(raw, 'max_concurrent_packages')
    if max_concurrent is None:
        max_concurrent = 4
    elif isinstance(max_concurrent, bool) or not isinstance(max_concurrent, int) or max_concurrent < 1:
        raise ValidationError(concurrency_key, "must be a positive integer")

    timeout_key, download_timeout = _option(raw, 'download_timeout')
    if download_timeout is None:
        download_timeout = 60.0
    elif isinstance(download_timeout, bool) or not isinstance(download_timeout, (int, float)) or download_timeout <= 0:
        raise ValidationError(timeout_key, "must be a positive number of seconds")

    package_specs: List[PackageSpec] = [_check_package(package, i) for i, package in enumerate(packages)]

    request = BuildRequest(
        packages=tuple(package_specs),
        output_dir=output_dir,
        clean=clean,
        absolute_dir=absolute_dir,
        log_level=log_level or "debug",
        skip_mirror_url=skip_mirror_url,
        generate_deployment_file=generate_deployment_file,
        registry_url=registry_url,
        registry_username=registry_username,
        registry_password=registry_password,
        max_concurrent_packages=max_concurrent,
        download_timeout=float(download_timeout),
    )
    logger.debug(f"Validated build request with {len(package_specs)} packages")
    return request
