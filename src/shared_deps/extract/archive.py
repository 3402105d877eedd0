#!/usr/bin/env python3

"""
Streaming tarball download and filtered extraction.

The HTTP response body is handed to tarfile in stream mode, so an archive is
never held in memory or written to disk as a whole. Each entry is checked
against the version's FilterSet as it goes past and only kept entries are
written below ``<output_dir>/<name>@<version>``.
"""

import os
import shutil
import tarfile
import logging
import posixpath
import zlib
from dataclasses import dataclass
from typing import List, Optional, Tuple, IO

import requests
from wcmatch import glob
from urllib3.exceptions import HTTPError as Urllib3HTTPError, ReadTimeoutError

from ..config.manager import PackageSpec
from ..errors import ExtractionError, TransferError
from ..registry.resolver import version_satisfies
from ..storage.manager import StorageManager

logger = logging.getLogger(__name__)

LICENSE_NAMES = ("license", "license.md", "license.txt")

# micromatch-style globs: "*" stays within one path segment and "**" spans directories
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB


def is_license(path: str) -> bool:
    return posixpath.basename(path).lower() in LICENSE_NAMES


def is_package_json(path: str) -> bool:
    return path.lower() == "package.json"


def strip_top_level(path: str) -> str:
    """Drop the wrapper directory ("package/" in npm tarballs) from an entry path"""
    if path.startswith("./"):
        path = path[2:]
    parts = path.split("/", 1)
    return parts[1] if len(parts) > 1 else ""


@dataclass(frozen=True)
class FilterSet:
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    @classmethod
    def for_version(cls, package: PackageSpec, version: str) -> "FilterSet":
        """Version-level include/exclude from an exact spec override the package-level ones"""
        include = package.include
        exclude = package.exclude
        for spec in package.versions:
            if spec.exact and version_satisfies(version, spec):
                if spec.include is not None:
                    include = spec.include
                if spec.exclude is not None:
                    exclude = spec.exclude
                break
        return cls(include=tuple(include or ()), exclude=tuple(exclude or ()))

    def matches(self, path: str) -> bool:
        included = glob.globmatch(path, list(self.include), flags=GLOB_FLAGS) if self.include else True
        excluded = glob.globmatch(path, list(self.exclude), flags=GLOB_FLAGS) if self.exclude else False
        return included and not excluded

    def keeps(self, path: str) -> bool:
        # Metadata and licensing always ship, whatever the filters say
        if is_license(path) or is_package_json(path):
            return True
        return self.matches(path)


class ArchiveExtractor:
    def __init__(self, storage: StorageManager, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = 60.0, chunk_size: int = 64 * 1024):
        self.storage = storage
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    def extract(self, name: str, version: str, tarball_url: str, filters: FilterSet) -> List[str]:
        """Download one version's tarball and extract the kept entries.

        Returns the extracted paths relative to the version directory, in
        archive order.
        """
        qualified = f"{name}@{version}"
        destination = self.storage.ensure_package_directory(name, version)

        try:
            response = self.session.get(tarball_url, stream=True, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout:
            raise TransferError(f"Request timed out to download tarball for {qualified}", package=name, version=version)
        except requests.RequestException as e:
            raise TransferError(f"Failed to download tarball for {qualified}: {e}", package=name, version=version)

        with response:
            response.raw.decode_content = True
            try:
                return self.extract_stream(response.raw, destination, filters, name, version)
            except ReadTimeoutError:
                raise TransferError(f"Request timed out to download tarball for {qualified}", package=name, version=version)
            except Urllib3HTTPError as e:
                raise TransferError(f"Failed to download tarball for {qualified}: {e}", package=name, version=version)

    def extract_stream(self, stream: IO[bytes], destination: str, filters: FilterSet,
                       name: str = "", version: str = "") -> List[str]:
        extracted = []
        try:
            with tarfile.open(fileobj=stream, mode="r|*") as archive:
                for member in archive:
                    relative = strip_top_level(member.name)
                    if not relative or not member.isfile():
                        continue
                    if not filters.keeps(relative):
                        continue

                    target = self._target_path(destination, relative, name, version)
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    source = archive.extractfile(member)
                    with open(target, "wb") as out:
                        shutil.copyfileobj(source, out, self.chunk_size)
                    extracted.append(relative)
        except (tarfile.TarError, zlib.error, EOFError, OSError) as e:
            raise ExtractionError(f"Failed to extract tarball for {name}@{version}: {e}", package=name, version=version)

        logger.debug(f"Extracted {len(extracted)} files into {destination}")
        return extracted

    def _target_path(self, destination: str, relative: str, name: str, version: str) -> str:
        normalized = posixpath.normpath(relative)
        if posixpath.isabs(normalized) or normalized == ".." or normalized.startswith("../"):
            raise ExtractionError(f"Refusing to extract {relative!r} outside of {name}@{version}",
                                  package=name, version=version)
        return os.path.join(destination, *normalized.split("/"))
