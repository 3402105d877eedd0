#!/usr/bin/env python3

"""Error types raised by the build pipeline."""

from typing import Optional


class SharedDepsError(Exception):
    """Base class for every error the build reports to the user."""


class ValidationError(SharedDepsError):
    """The build request is malformed. Raised before any I/O."""

    def __init__(self, field: str, expected: str):
        self.field = field
        self.expected = expected
        super().__init__(f"self-hosted-shared-dependencies: {field} {expected}")


class PackageError(SharedDepsError):
    def __init__(self, message: str, package: Optional[str] = None, version: Optional[str] = None):
        self.package = package
        self.version = version
        super().__init__(message)

    @property
    def qualified_name(self) -> str:
        if self.package and self.version:
            return f"{self.package}@{self.version}"
        return self.package or ""


class ResolutionError(PackageError):
    """The package does not exist or no published version matches."""


class TransferError(PackageError):
    """Network failure or timeout talking to the registry, mirror or tarball host."""


class ExtractionError(PackageError):
    """The tarball stream could not be extracted."""


class FilesystemError(SharedDepsError):
    """Creating or removing an output directory failed."""

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(message)


class FatalBuildError(SharedDepsError):
    """A fatal event was dispatched; the run stops."""
