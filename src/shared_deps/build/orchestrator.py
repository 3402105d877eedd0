#!/usr/bin/env python3

"""
Build orchestration.

Every requested package becomes an asyncio task as soon as the build starts,
so registry lookups and downloads for different packages overlap. Each task
buffers its own log events and the orchestrator drains the finished tasks in
request order, which keeps the printed output grouped by package no matter
which network response arrives first.

Failures inside a task are turned into a trailing FATAL event rather than
raised, so sibling versions still finish. The FATAL event stops the run when
it is drained; at that point any package task that is still running is
cancelled.
"""

import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO, Union

import requests

from .. import __version__
from ..config.manager import BuildRequest, PackageSpec
from ..config.validator import validate_build_request
from ..deploy.dockerfile import DockerfileGenerator
from ..errors import SharedDepsError, ResolutionError
from ..extract.archive import ArchiveExtractor, FilterSet
from ..logs.aggregator import LogAggregator, LogEvent
from ..registry.resolver import RegistryClient, resolve_versions, tarball_url
from ..registry.skip_checker import MirrorSkipChecker
from ..storage.manager import StorageManager

logger = logging.getLogger(__name__)

# Tarball streams in flight at once, across all packages
MAX_CONCURRENT_DOWNLOADS = 10


@dataclass
class UnitResult:
    events: List[LogEvent] = field(default_factory=list)
    error: Optional[Exception] = None
    extracted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, error: Exception) -> None:
        self.error = error
        self.events.append(LogEvent.fatal(f"----> {error}"))

    def merge(self, other: "UnitResult") -> None:
        self.events.extend(other.events)
        self.extracted.extend(other.extracted)
        self.skipped.extend(other.skipped)
        if self.error is None and other.error is not None:
            self.error = other.error


@dataclass
class BuildSummary:
    output_dir: str
    packages: int = 0
    extracted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    dockerfile: Optional[str] = None
    elapsed: float = 0.0


class BuildOrchestrator:
    def __init__(self, request: Union[BuildRequest, Dict[str, Any]], session: Optional[requests.Session] = None,
                 aggregator: Optional[LogAggregator] = None,
                 stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None):
        self.raw_request = request
        self.session = session
        self.aggregator = aggregator
        self.stdout = stdout
        self.stderr = stderr

        # Set up by build() once the request is validated
        self.request: Optional[BuildRequest] = None
        self.storage: Optional[StorageManager] = None
        self.registry: Optional[RegistryClient] = None
        self.skip_checker: Optional[MirrorSkipChecker] = None
        self.extractor: Optional[ArchiveExtractor] = None
        self._package_semaphore: Optional[asyncio.Semaphore] = None
        self._download_semaphore: Optional[asyncio.Semaphore] = None

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers['User-Agent'] = f"self-hosted-shared-dependencies/{__version__}"
        return session

    def _setup(self, request: BuildRequest) -> None:
        session = self.session or self._create_session()
        self.request = request
        if self.aggregator is None:
            self.aggregator = LogAggregator(request.log_level, stdout=self.stdout, stderr=self.stderr)
        self.storage = StorageManager(request.output_dir)
        self.registry = RegistryClient(
            request.registry_url,
            session=session,
            username=request.registry_username,
            password=request.registry_password,
        )
        self.skip_checker = MirrorSkipChecker(request.skip_mirror_url, session=session)
        self.extractor = ArchiveExtractor(self.storage, session=session, timeout=request.download_timeout)
        self._package_semaphore = asyncio.Semaphore(request.max_concurrent_packages)
        self._download_semaphore = asyncio.Semaphore(MAX_CONCURRENT_DOWNLOADS)

    async def build(self) -> BuildSummary:
        start = time.monotonic()

        request = validate_build_request(self.raw_request)
        self._setup(request)
        aggregator = self.aggregator
        summary = BuildSummary(output_dir=request.output_dir, packages=len(request.packages))

        if request.clean:
            self.storage.clean()

        aggregator.warn(f"Building {len(request.packages):,} packages concurrently (with cache)")

        tasks = [asyncio.create_task(self._run_package(package)) for package in request.packages]
        try:
            for task in tasks:
                result = await task
                aggregator.drain(result.events)
                summary.extracted.extend(result.extracted)
                summary.skipped.extend(result.skipped)
        finally:
            await self._cancel_pending(tasks)

        self.storage.ensure_output_directory()

        if request.generate_deployment_file:
            generator = DockerfileGenerator(request.output_dir)
            aggregator.warn(f"Creating {generator.dockerfile_path}")
            summary.dockerfile = generator.write()

        summary.elapsed = time.monotonic() - start
        aggregator.warn(f"Finished build in {summary.elapsed:.3f} seconds")
        return summary

    async def _cancel_pending(self, tasks: List["asyncio.Task[UnitResult]"]) -> None:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"Cancelled {len(pending)} unfinished package builds")
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run_package(self, package: PackageSpec) -> UnitResult:
        async with self._package_semaphore:
            return await self.build_package(package)

    async def build_package(self, package: PackageSpec) -> UnitResult:
        result = UnitResult()
        result.events.append(LogEvent.warn(f"--> {package.name}"))

        try:
            metadata = await asyncio.to_thread(self.registry.fetch_metadata, package.name)
        except SharedDepsError as e:
            result.events.append(LogEvent.warn(str(e)))
            result.fail(ResolutionError(f"No package '{package.name}' found in the npm registry", package=package.name))
            return result

        matched = resolve_versions(metadata, package.versions)
        if not matched:
            result.fail(ResolutionError(f"No matching versions for {package.name}", package=package.name))
            return result

        result.events.append(LogEvent.debug(f"----> Matched versions: {', '.join(matched)}"))

        version_results = await asyncio.gather(
            *(self.build_version(package, metadata, version) for version in matched),
            return_exceptions=True,
        )

        for version, version_result in zip(matched, version_results):
            if isinstance(version_result, Exception):
                logger.error(f"Unexpected error building {package.name}@{version}: {version_result}")
                failed = UnitResult()
                failed.fail(version_result)
                version_result = failed
            result.merge(version_result)

        return result

    async def build_version(self, package: PackageSpec, metadata: Dict[str, Any], version: str) -> UnitResult:
        result = UnitResult()
        qualified = f"{package.name}@{version}"

        try:
            if self.skip_checker.enabled:
                should_skip = await asyncio.to_thread(self.skip_checker.should_skip, package.name, version)
                if should_skip:
                    probe_url = self.skip_checker.probe_url(package.name, version)
                    result.events.append(LogEvent.warn(
                        f"----> Skipping {qualified} because it is already available at URL {probe_url}"
                    ))
                    result.skipped.append(qualified)
                    return result

            result.events.append(LogEvent.warn(f"----> Downloading and extracting {qualified}"))

            url = tarball_url(metadata, version)
            filters = FilterSet.for_version(package, version)
            async with self._download_semaphore:
                files = await asyncio.to_thread(self.extractor.extract, package.name, version, url, filters)

            result.events.extend(LogEvent.debug(f"------> {path}") for path in files)
            result.extracted.append(qualified)

        except SharedDepsError as e:
            result.fail(e)

        return result


def run_build(request: Union[BuildRequest, Dict[str, Any]], **kwargs) -> BuildSummary:
    """Synchronous entry point: validate, build and return the summary"""
    return asyncio.run(BuildOrchestrator(request, **kwargs).build())
