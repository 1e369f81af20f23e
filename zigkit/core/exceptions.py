"""
Centralized exception hierarchy for zigkit.

This module defines all custom exceptions used across the codebase
so that callers can tell failure classes apart (transport, integrity,
not-found, conflict, environment, corruption) without string matching.
"""

from typing import List, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class ZigkitError(Exception):
    """Base exception for all zigkit errors."""

    pass


# ============================================================================
# Transport Exceptions
# ============================================================================


class TransportError(ZigkitError):
    """Base exception for network and timeout failures."""

    pass


class DownloadError(TransportError):
    """Raised when a file cannot be fetched from a URL."""

    pass


class IndexFetchError(TransportError):
    """Raised when the upstream version index cannot be fetched or parsed."""

    pass


class MirrorSyncError(TransportError):
    """Raised when the community mirror list cannot be fetched."""

    pass


# ============================================================================
# Integrity Exceptions
# ============================================================================


class IntegrityError(ZigkitError):
    """Base exception for artifacts that failed verification."""

    pass


class SignatureVerificationError(IntegrityError):
    """Raised when a detached signature is missing or does not verify."""

    pass


class ChecksumMismatchError(IntegrityError):
    """Raised when an artifact's digest differs from the expected value."""

    pass


# ============================================================================
# Not-found Exceptions
# ============================================================================


class ZigkitNotFoundError(ZigkitError):
    """Base exception when a requested version, artifact or binary is absent."""

    pass


class VersionNotFoundError(ZigkitNotFoundError):
    """Raised when a version is not present in the upstream index."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Version {version} not found in the upstream index")


class PlatformNotSupportedError(ZigkitNotFoundError):
    """Raised when the index has no artifact for the current platform."""

    def __init__(self, version: str, platform_key: str):
        self.version = version
        self.platform_key = platform_key
        super().__init__(
            f"No download available for {platform_key} (version {version})"
        )


class VersionNotInstalledError(ZigkitNotFoundError):
    """Raised when an operation targets a version that is not installed."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Zig {version} is not installed")


class BinaryNotFoundError(ZigkitNotFoundError):
    """Raised when the zig executable cannot be located in an install."""

    def __init__(self, searched_path):
        self.searched_path = searched_path
        super().__init__(f"Zig binary not found in {searched_path}")


class SystemInstallationNotFoundError(ZigkitNotFoundError):
    """Raised when no usable system Zig installation can be detected."""

    pass


# ============================================================================
# Conflict Exceptions
# ============================================================================


class ConflictError(ZigkitError):
    """Base exception when the target of an operation already exists."""

    pass


class VersionAlreadyInstalledError(ConflictError):
    """Raised when installing a version that is already completed."""

    def __init__(self, version: str, path: str = ""):
        self.version = version
        self.path = path
        msg = f"Zig {version} is already installed"
        if path:
            msg += f" at {path}"
        super().__init__(msg)


# ============================================================================
# Environment / State Exceptions
# ============================================================================


class EnvironmentCapabilityError(ZigkitError):
    """Raised when the OS lacks a capability we need (e.g. symlink permission)."""

    pass


class CorruptStateError(ZigkitError):
    """Raised when persisted state cannot be parsed or fails validation."""

    pass


class ConfigurationError(ZigkitError):
    """Raised when components are wired together incorrectly."""

    pass


class InvalidOperationError(ZigkitError):
    """Raised for operations that are never allowed (e.g. removing 'system')."""

    pass


class InstallLockTimeout(ZigkitError):
    """Raised when another process holds the install lock for a version."""

    pass


# ============================================================================
# Activation Exceptions
# ============================================================================


class ActivationError(ZigkitError):
    """Raised when a version cannot be made active."""

    pass


class WindowsActivationError(ActivationError):
    """Raised when extraction-based activation fails."""

    def __init__(
        self,
        message: str,
        version: str = "unknown",
        backup_path: Optional[str] = None,
    ):
        self.version = version
        self.backup_path = backup_path
        super().__init__(message)


# ============================================================================
# Download Orchestration Exceptions
# ============================================================================


class CandidateFailure:
    """One failed attempt against a single candidate URL."""

    def __init__(self, url: str, mirror: Optional[str], stage: str, reason: str):
        self.url = url
        self.mirror = mirror
        self.stage = stage
        self.reason = reason

    def __str__(self) -> str:
        source = self.mirror or "origin"
        return f"[{source}] {self.stage} failed for {self.url}: {self.reason}"

    def __repr__(self) -> str:
        return (
            f"CandidateFailure(url={self.url!r}, mirror={self.mirror!r}, "
            f"stage={self.stage!r}, reason={self.reason!r})"
        )


class AllCandidatesFailedError(ZigkitError):
    """Raised when every mirror and the origin failed download or verification."""

    def __init__(
        self,
        failures: List[CandidateFailure],
        last_error: Optional[BaseException] = None,
    ):
        self.failures = list(failures)
        self.last_error = last_error
        lines = [f"All {len(self.failures)} download candidates failed:"]
        lines.extend(f"  {failure}" for failure in self.failures)
        super().__init__("\n".join(lines))
