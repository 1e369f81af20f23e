"""
Pytest configuration and shared fixtures for zigkit tests.
"""

import base64
import hashlib
import io
import os
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Generator

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from zigkit.core.directory import ensure_zigkit_structure
from zigkit.core.platform import PlatformInfo


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line("markers", "unit: marks tests as fast unit tests")
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.delenv("ZIGKIT_DIR", raising=False)

    return fake_home


@pytest.fixture
def zigkit_dir(temp_dir: Path, monkeypatch) -> Path:
    """Point ZIGKIT_DIR at a fresh directory."""
    root = temp_dir / "zigkit"
    monkeypatch.setenv("ZIGKIT_DIR", str(root))
    return root


@pytest.fixture
def zigkit_paths(zigkit_dir: Path) -> dict:
    """Fully created zigkit directory layout."""
    return ensure_zigkit_structure(zigkit_dir)


@pytest.fixture
def linux_platform() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="x86_64")


@pytest.fixture
def no_network(monkeypatch):
    """Disable network access for tests."""
    import socket

    def guard(*args, **kwargs):
        raise RuntimeError("Network access not allowed in this test")

    monkeypatch.setattr(socket, "socket", guard)


# ============================================================================
# minisign Fixtures
# ============================================================================


@dataclass
class MinisignKeypair:
    """Test signing key producing minisign-format public keys and signatures."""

    private_key: Ed25519PrivateKey
    key_id: bytes

    @property
    def public_key_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )

    @property
    def public_key_text(self) -> str:
        raw = b"Ed" + self.key_id + self.public_key_bytes
        return base64.b64encode(raw).decode("ascii")

    def sign(
        self,
        data: bytes,
        prehashed: bool = False,
        trusted_comment: str = "timestamp:1700000000\tfile:zig.tar.xz",
    ) -> bytes:
        """Return the ``.minisig`` body for ``data``."""
        if prehashed:
            algorithm = b"ED"
            message = hashlib.blake2b(data, digest_size=64).digest()
        else:
            algorithm = b"Ed"
            message = data

        signature = self.private_key.sign(message)
        global_signature = self.private_key.sign(
            signature + trusted_comment.encode("utf-8")
        )
        lines = [
            "untrusted comment: signature from minisign secret key",
            base64.b64encode(algorithm + self.key_id + signature).decode("ascii"),
            f"trusted comment: {trusted_comment}",
            base64.b64encode(global_signature).decode("ascii"),
        ]
        return ("\n".join(lines) + "\n").encode("utf-8")


def _new_keypair() -> MinisignKeypair:
    return MinisignKeypair(
        private_key=Ed25519PrivateKey.generate(), key_id=os.urandom(8)
    )


@pytest.fixture
def minisign_keypair() -> MinisignKeypair:
    """Fresh Ed25519 key in minisign format."""
    return _new_keypair()


@pytest.fixture
def other_keypair() -> MinisignKeypair:
    """A second, untrusted key."""
    return _new_keypair()


@pytest.fixture
def trusted_key(minisign_keypair, monkeypatch) -> MinisignKeypair:
    """Make ``minisign_keypair`` the key the download orchestrator trusts."""
    monkeypatch.setattr(
        "zigkit.toolchain.fetcher.ZIG_MINISIGN_PUBLIC_KEY",
        minisign_keypair.public_key_text,
    )
    return minisign_keypair


# ============================================================================
# Archive Fixtures
# ============================================================================


def build_zig_archive(
    version: str, platform_key: str = "x86_64-linux", fmt: str = "tar.xz"
) -> bytes:
    """
    Build an in-memory Zig release archive.

    The archive holds ``zig-<platform>-<version>/zig`` (``zig.exe`` for zip)
    and a stub ``lib/std/std.zig``.
    """
    top = f"zig-{platform_key}-{version}"
    executable = "zig.exe" if fmt == "zip" else "zig"
    files = {
        f"{top}/{executable}": b"#!/bin/sh\necho " + version.encode() + b"\n",
        f"{top}/lib/std/std.zig": b"pub const x = 1;\n",
    }

    buffer = io.BytesIO()
    if fmt == "zip":
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, content in files.items():
                zf.writestr(name, content)
    else:
        with tarfile.open(fileobj=buffer, mode="w:xz") as tf:
            for name, content in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(content)
                info.mode = 0o755
                tf.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture
def zig_archive():
    """Factory fixture: ``zig_archive(version, platform_key, fmt) -> bytes``."""
    return build_zig_archive
