"""
Unit tests for the Zig download index.
"""

import json

import pytest
import responses

from zigkit.core.exceptions import (
    IndexFetchError,
    PlatformNotSupportedError,
    VersionNotFoundError,
)
from zigkit.toolchain.index import ArtifactInfo, VersionIndex

INDEX_URL = "https://ziglang.org/download/index.json"

INDEX = {
    "master": {
        "version": "0.12.0-dev.1849+bb0f7d55e",
        "x86_64-linux": {
            "tarball": "https://ziglang.org/builds/zig-linux-x86_64-0.12.0-dev.1849+bb0f7d55e.tar.xz",
            "shasum": "a" * 64,
            "size": "44000000",
        },
    },
    "0.11.0": {
        "date": "2023-08-04",
        "x86_64-linux": {
            "tarball": "https://ziglang.org/download/0.11.0/zig-linux-x86_64-0.11.0.tar.xz",
            "shasum": "b" * 64,
            "size": "44961892",
        },
        "x86_64-windows": {
            "tarball": "https://ziglang.org/download/0.11.0/zig-windows-x86_64-0.11.0.zip",
            "shasum": "c" * 64,
            "size": "not-a-number",
        },
    },
    "0.9.1": {
        "x86_64-linux": {
            "tarball": "https://ziglang.org/download/0.9.1/zig-linux-x86_64-0.9.1.tar.xz",
        },
    },
    "0.10.1": {"x86_64-linux": {"tarball": ""}},
    "0.12.0-rc1": {},
}


@pytest.fixture
def index():
    return VersionIndex(data=INDEX)


class TestArtifactInfo:
    def test_filename(self):
        artifact = ArtifactInfo(
            url="https://ziglang.org/download/0.11.0/zig-linux-x86_64-0.11.0.tar.xz",
            shasum=None,
        )
        assert artifact.filename == "zig-linux-x86_64-0.11.0.tar.xz"

    def test_filename_ignores_query(self):
        artifact = ArtifactInfo(url="https://m.example/zig.tar.xz?x=1", shasum=None)
        assert artifact.filename == "zig.tar.xz"


class TestVersionQueries:
    """Test listing and latest-version resolution."""

    def test_list_versions_excludes_master(self, index):
        assert index.list_versions() == ["0.11.0", "0.9.1", "0.10.1", "0.12.0-rc1"]

    def test_latest_stable_uses_version_ordering(self, index):
        # 0.11.0 > 0.10.1 > 0.9.1 even though "0.9.1" sorts last as a string
        assert index.latest_stable() == "0.11.0"

    def test_latest_stable_skips_pre_releases(self):
        index = VersionIndex(data={"0.11.0": {}, "0.12.0-rc1": {}, "0.12.0-dev.5": {}})
        assert index.latest_stable() == "0.11.0"

    def test_latest_stable_none(self):
        assert VersionIndex(data={"master": {}}).latest_stable() is None

    def test_master_version(self, index):
        assert index.master_version() == "0.12.0-dev.1849+bb0f7d55e"

    def test_validate_version(self, index):
        assert index.validate_version("0.11.0")
        assert index.validate_version("master")
        assert not index.validate_version("0.0.1")


class TestLookup:
    """Test artifact lookup."""

    def test_lookup(self, index):
        artifact = index.lookup("0.11.0", "x86_64-linux")
        assert artifact.url.endswith("zig-linux-x86_64-0.11.0.tar.xz")
        assert artifact.shasum == "b" * 64
        assert artifact.size == 44961892

    def test_lookup_master(self, index):
        artifact = index.lookup("master", "x86_64-linux")
        assert "0.12.0-dev.1849" in artifact.filename

    def test_unparsable_size(self, index):
        assert index.lookup("0.11.0", "x86_64-windows").size is None

    def test_missing_shasum(self, index):
        artifact = index.lookup("0.9.1", "x86_64-linux")
        assert artifact.shasum is None
        assert artifact.size is None

    def test_unknown_version(self, index):
        with pytest.raises(VersionNotFoundError):
            index.lookup("0.0.1", "x86_64-linux")

    def test_unknown_platform(self, index):
        with pytest.raises(PlatformNotSupportedError):
            index.lookup("0.11.0", "riscv64-linux")

    def test_empty_tarball(self, index):
        with pytest.raises(PlatformNotSupportedError):
            index.lookup("0.10.1", "x86_64-linux")


class TestFetch:
    """Test fetching the index over HTTP."""

    @responses.activate
    def test_fetch_once(self):
        responses.add(responses.GET, INDEX_URL, json=INDEX)
        index = VersionIndex(INDEX_URL)

        assert index.validate_version("0.11.0")
        assert index.latest_stable() == "0.11.0"
        assert len(responses.calls) == 1

    @responses.activate
    def test_http_error(self):
        responses.add(responses.GET, INDEX_URL, status=502)
        with pytest.raises(IndexFetchError, match="Could not fetch"):
            VersionIndex(INDEX_URL).list_versions()

    @responses.activate
    def test_invalid_json(self):
        responses.add(responses.GET, INDEX_URL, body="<html>")
        with pytest.raises(IndexFetchError, match="not valid JSON"):
            VersionIndex(INDEX_URL).list_versions()

    @responses.activate
    def test_unexpected_structure(self):
        responses.add(responses.GET, INDEX_URL, body=json.dumps(["0.11.0"]))
        with pytest.raises(IndexFetchError, match="unexpected structure"):
            VersionIndex(INDEX_URL).list_versions()
