#!/usr/bin/env python3

import os
import json
import yaml
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass

DEFAULT_CONFIG_FILE = "shared-deps.yaml"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org/"

@dataclass(frozen=True)
class VersionSpec:
    range: str
    exact: bool = False  # object form {version: ...} matches one version only
    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None

@dataclass(frozen=True)
class PackageSpec:
    name: str
    versions: Tuple[VersionSpec, ...]
    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None

@dataclass(frozen=True)
class BuildRequest:
    packages: Tuple[PackageSpec, ...] = ()
    output_dir: str = "npm"
    clean: bool = False
    absolute_dir: bool = False
    log_level: str = "debug"
    skip_mirror_url: Optional[str] = None
    generate_deployment_file: bool = False
    # Registry access
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None
    # Concurrency and timeouts
    max_concurrent_packages: int = 4
    download_timeout: float = 60.0

    def package_dir(self, name: str, version: str) -> str:
        return os.path.join(self.output_dir, f"{name}@{version}")


class ConfigManager:
    """Loads a build file into the raw mapping the validator expects."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._get_default_config_path()
        self._raw: Optional[Dict[str, Any]] = None

    def _get_default_config_path(self) -> str:
        env_path = os.environ.get('SHARED_DEPENDENCIES_CONFIG')
        if env_path:
            return env_path
        return os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)

    def load_config(self) -> Dict[str, Any]:
        if self._raw is not None:
            return self._raw

        if not os.path.exists(self.config_path):
            raise ValueError(f"Config file not found: {self.config_path}")

        try:
            # JSON documents are valid YAML, so one loader covers both formats
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ValueError(f"Error loading config from {self.config_path}: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Error loading config from {self.config_path}: top level must be a mapping")

        self._raw = data
        return self._raw

    def get_config(self, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Return the loaded mapping with non-None overrides applied on top"""
        merged = dict(self.load_config())
        for key, value in (overrides or {}).items():
            if value is not None:
                merged[key] = value
        return merged


def packages_from_package_json(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Build a raw package list from the dependencies of a package.json"""
    path = path or os.path.join(os.getcwd(), "package.json")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            manifest = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Error reading {path}: {e}")

    dependencies = manifest.get('dependencies') or {}
    return [
        {'name': name, 'versions': [version_range]}
        for name, version_range in dependencies.items()
    ]
