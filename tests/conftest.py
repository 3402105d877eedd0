#!/usr/bin/env python3

"""
Pytest configuration and shared fixtures for the shared-deps test suite.
"""

import io
import os
import json
import shutil
import tarfile
import tempfile
import pytest
import requests
from unittest.mock import Mock
from typing import Dict, Optional

REGISTRY = "https://registry.npmjs.org"


class RawStream(io.BytesIO):
    """BytesIO standing in for urllib3's response body"""
    decode_content = False


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, body: bytes = b""):
        self.status_code = status_code
        self._payload = payload
        self.raw = RawStream(body)
        self.closed = False

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error for url")

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def make_tarball(files: Dict[str, bytes], root: str = "package") -> bytes:
    """Build a gzipped npm-style tarball in memory"""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for path, content in files.items():
            info = tarfile.TarInfo(f"{root}/{path}" if root else path)
            info.size = len(content)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class FakeRegistry:
    """Routes GET/HEAD calls of a mocked requests.Session to canned responses"""

    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.tarballs: Dict[str, bytes] = {}
        self.mirrored: Dict[str, int] = {}
        self.errors: Dict[str, Exception] = {}
        self.session = Mock(spec=requests.Session)
        self.session.headers = {}
        self.session.get.side_effect = self._get
        self.session.head.side_effect = self._head

    def add_package(self, name: str, versions: Dict[str, Dict[str, bytes]]):
        document = {'name': name, 'versions': {}}
        for version, files in versions.items():
            url = f"{REGISTRY}/{name}/-/{name.split('/')[-1]}-{version}.tgz"
            document['versions'][version] = {
                'name': name,
                'version': version,
                'dist': {'tarball': url},
            }
            self.tarballs[url] = make_tarball(files)
        self.documents[f"{REGISTRY}/{name.replace('/', '%2F')}"] = document
        return document

    def _get(self, url, **kwargs):
        if url in self.errors:
            raise self.errors[url]
        if url in self.documents:
            return FakeResponse(payload=self.documents[url])
        if url in self.tarballs:
            return FakeResponse(body=self.tarballs[url])
        return FakeResponse(status_code=404)

    def _head(self, url, **kwargs):
        if url in self.errors:
            raise self.errors[url]
        return FakeResponse(status_code=self.mirrored.get(url, 404))

    def tarball_requests(self):
        return [c.args[0] for c in self.session.get.call_args_list if c.args[0].endswith('.tgz')]


REACT_FILES = {
    'package.json': b'{"name": "react"}',
    'LICENSE': b'MIT License',
    'umd/react.development.js': b'// umd dev',
    'umd/react.production.min.js': b'// umd prod',
    'cjs/react.development.js': b'// cjs dev',
    'index.js': b'module.exports = {}',
}


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after test"""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir

    # Cleanup
    if os.path.exists(temp_dir):
        shutil.rmtree(temp_dir)


@pytest.fixture
def fake_registry():
    """Provide a registry with react 16.9.0, 17.0.0 and 17.0.1 published"""
    registry = FakeRegistry()
    registry.add_package('react', {
        '16.9.0': REACT_FILES,
        '17.0.0': REACT_FILES,
        '17.0.1': REACT_FILES,
    })
    return registry


@pytest.fixture
def sample_build_config():
    """Provide a raw build request as it would be loaded from a config file"""
    return {
        'outputDir': 'out',
        'clean': True,
        'logLevel': 'debug',
        'packages': [
            {
                'name': 'react',
                'include': ['umd/**'],
                'versions': ['>=17'],
            }
        ],
    }


@pytest.fixture
def write_config(temp_dir):
    """Write a config mapping to a YAML or JSON file and return its path"""
    def _write(data, filename="shared-deps.yaml"):
        path = os.path.join(temp_dir, filename)
        with open(path, 'w') as f:
            json.dump(data, f)
        return path
    return _write


@pytest.fixture(autouse=True)
def setup_logging():
    """Set up logging for tests"""
    import logging

    logging.basicConfig(
        level=logging.WARNING,  # Only show warnings and errors in tests
        format="%(name)s - %(levelname)s - %(message)s"
    )

    logging.getLogger("asyncio").setLevel(logging.ERROR)


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """Mark integration test classes by name"""
    for item in items:
        if item.cls is not None and "Integration" in item.cls.__name__:
            item.add_marker(pytest.mark.integration)
