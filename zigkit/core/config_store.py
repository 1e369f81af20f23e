"""
Persistent config store for installed Zig versions.

State is persisted to ``zigkit.json`` in the zigkit root directory. Every
read re-loads the file and every write replaces it atomically, so no
component holds stale state across calls.

Example:
    >>> from zigkit.core.config_store import ConfigStore
    >>>
    >>> store = ConfigStore(paths["config"])
    >>> config = store.load()
    >>> print(config.current_version)
    >>> store.set_current_version("0.11.0")
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from zigkit.core.exceptions import CorruptStateError
from zigkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1
SYSTEM_VERSION = "system"
MASTER_VERSION = "master"


class InstallStatus(str, Enum):
    """Lifecycle state of an installed version record."""

    DOWNLOADING = "downloading"
    COMPLETED = "completed"


class VerificationStatus(str, Enum):
    """Outcome of artifact verification."""

    PENDING = "pending"
    VERIFIED = "verified"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class InstalledVersion:
    """
    One installed (or installing) Zig release.

    Provenance fields (checksum, signature, source_url, ...) are only set
    once the download orchestrator has verified the artifact.

    Attributes:
        version: Version identifier ('0.11.0', 'master')
        install_path: Directory owning every file of this version
        status: Lifecycle state
        downloaded_at: ISO 8601 timestamp
        checksum: SHA-256 digest of the downloaded archive
        checksum_verified: Whether the digest matched the index
        signature: minisign signature text the archive was verified with
        signature_verified: Whether the signature verified (required)
        verification_status: Summary of the verification outcome
        source_url: URL the verified archive was downloaded from
    """

    version: str
    install_path: str
    status: InstallStatus = InstallStatus.DOWNLOADING
    downloaded_at: str = field(default_factory=utc_now_iso)
    checksum: Optional[str] = None
    checksum_verified: bool = False
    signature: Optional[str] = None
    signature_verified: bool = False
    verification_status: VerificationStatus = VerificationStatus.PENDING
    source_url: Optional[str] = None

    @property
    def is_activatable(self) -> bool:
        """Completed and signature-verified."""
        return self.status == InstallStatus.COMPLETED and self.signature_verified

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "install_path": self.install_path,
            "status": self.status.value,
            "downloaded_at": self.downloaded_at,
            "checksum": self.checksum,
            "checksum_verified": self.checksum_verified,
            "signature": self.signature,
            "signature_verified": self.signature_verified,
            "verification_status": self.verification_status.value,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledVersion":
        """
        Build a record from its serialized form.

        Raises:
            CorruptStateError: If required fields are missing or invalid
        """
        if not isinstance(data, dict):
            raise CorruptStateError(f"Version record must be an object, got {data!r}")

        try:
            return cls(
                version=str(data["version"]),
                install_path=str(data["install_path"]),
                status=InstallStatus(data.get("status", "downloading")),
                downloaded_at=str(data.get("downloaded_at") or utc_now_iso()),
                checksum=data.get("checksum"),
                checksum_verified=bool(data.get("checksum_verified", False)),
                signature=data.get("signature"),
                signature_verified=bool(data.get("signature_verified", False)),
                verification_status=VerificationStatus(
                    data.get("verification_status", "pending")
                ),
                source_url=data.get("source_url"),
            )
        except (KeyError, ValueError) as e:
            raise CorruptStateError(f"Invalid version record {data!r}: {e}") from e


@dataclass
class SystemInstallation:
    """A Zig installation found on PATH that zigkit does not own."""

    path: str
    version: str

    def to_dict(self) -> dict:
        return {"path": self.path, "version": self.version}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemInstallation":
        if not isinstance(data, dict) or "path" not in data or "version" not in data:
            raise CorruptStateError(f"Invalid system installation record: {data!r}")
        return cls(path=str(data["path"]), version=str(data["version"]))


@dataclass
class ZigkitConfig:
    """
    Complete persisted state.

    Attributes:
        config_version: File format version
        versions: Installed version records keyed by version id
        current_version: Active version id, 'system', or None
        system_installation: Detected system Zig, if any
    """

    config_version: int = CONFIG_VERSION
    versions: Dict[str, InstalledVersion] = field(default_factory=dict)
    current_version: Optional[str] = None
    system_installation: Optional[SystemInstallation] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "config_version": self.config_version,
            "current_version": self.current_version,
            "system_installation": self.system_installation.to_dict()
            if self.system_installation
            else None,
            "versions": {
                name: record.to_dict() for name, record in self.versions.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ZigkitConfig":
        """
        Raises:
            CorruptStateError: If the structure is invalid
        """
        if not isinstance(data, dict):
            raise CorruptStateError("Config root must be an object")

        config_version = data.get("config_version", CONFIG_VERSION)
        if config_version != CONFIG_VERSION:
            raise CorruptStateError(
                f"Unsupported config version {config_version} (expected {CONFIG_VERSION})"
            )

        raw_versions = data.get("versions") or {}
        if not isinstance(raw_versions, dict):
            raise CorruptStateError("'versions' must be an object")

        versions = {}
        for name, record in raw_versions.items():
            parsed = InstalledVersion.from_dict(record)
            if parsed.version != name:
                raise CorruptStateError(
                    f"Version record key {name!r} does not match {parsed.version!r}"
                )
            versions[name] = parsed

        current = data.get("current_version")
        if current is not None and not isinstance(current, str):
            raise CorruptStateError(f"Invalid current_version: {current!r}")

        system = data.get("system_installation")
        return cls(
            config_version=config_version,
            versions=versions,
            current_version=current,
            system_installation=SystemInstallation.from_dict(system)
            if system is not None
            else None,
        )


def serialize_config(config: ZigkitConfig) -> str:
    return json.dumps(config.to_dict(), indent=2) + "\n"


class ConfigStore:
    """
    Loads and atomically saves ``zigkit.json``.

    A missing file yields an empty default config. A corrupt file is logged
    as a warning and replaced by the default config in memory; the file on
    disk is left alone until the next save.

    Attributes:
        config_path: Path to zigkit.json
    """

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)

    def load(self) -> ZigkitConfig:
        """
        Load state from disk.

        Returns:
            Current config (defaults if missing or corrupt)
        """
        if not self.config_path.exists():
            logger.debug(f"Config file not found, using defaults: {self.config_path}")
            return ZigkitConfig()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = ZigkitConfig.from_dict(data)
        except (OSError, json.JSONDecodeError, CorruptStateError) as e:
            logger.warning(
                f"Invalid config file {self.config_path}, resetting to default: {e}"
            )
            return ZigkitConfig()

        logger.debug(f"Loaded config from {self.config_path}")
        return config

    def save(self, config: ZigkitConfig) -> None:
        """Save state to disk atomically."""
        atomic_write(self.config_path, serialize_config(config))
        logger.debug(f"Saved config to {self.config_path}")

    # ------------------------------------------------------------------
    # Read/modify/write helpers
    # ------------------------------------------------------------------

    def get_version(self, version: str) -> Optional[InstalledVersion]:
        return self.load().versions.get(version)

    def put_version(self, record: InstalledVersion) -> None:
        config = self.load()
        config.versions[record.version] = record
        self.save(config)

    def delete_version(self, version: str) -> bool:
        """Remove a version record. Returns True if one existed."""
        config = self.load()
        if version not in config.versions:
            return False
        del config.versions[version]
        self.save(config)
        return True

    def set_current_version(self, version: Optional[str]) -> None:
        config = self.load()
        config.current_version = version
        self.save(config)

    def set_system_installation(
        self, installation: Optional[SystemInstallation]
    ) -> None:
        config = self.load()
        config.system_installation = installation
        self.save(config)


__all__ = [
    "ConfigStore",
    "ZigkitConfig",
    "InstalledVersion",
    "SystemInstallation",
    "InstallStatus",
    "VerificationStatus",
    "SYSTEM_VERSION",
    "MASTER_VERSION",
]
