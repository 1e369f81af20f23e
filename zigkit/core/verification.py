"""
Artifact verification: SHA-256 checksums and minisign detached signatures.

This module provides the two independent integrity checks applied to
every downloaded Zig archive:
- SHA-256 digest computation and constant-time comparison
- minisign signature verification against the hardcoded Zig release key

Both checks only read the target file. ``verify_signature`` never raises;
any parse error or mismatch is reported as ``False`` so that callers can
move on to the next download source.

minisign formats handled here:

    public key   base64( alg[2] || key_id[8] || ed25519_pk[32] )
    signature    untrusted comment: <text>
                 base64( alg[2] || key_id[8] || sig[64] )
                 trusted comment: <text>
                 base64( global_sig[64] )

``alg`` is ``Ed`` (signature over the raw file) or ``ED`` (signature over
the BLAKE2b-512 digest of the file). The global signature covers
``sig || trusted_comment``.
"""

import base64
import binascii
import hashlib
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = logging.getLogger(__name__)

# Root of trust for every managed install. Not configurable.
ZIG_MINISIGN_PUBLIC_KEY = "RWSGOq2NVecA2UPNdBUZykf1CCb147pkmdtYxgb3Ti+JO/wCYvhbAb/U"

SIGNATURE_SUFFIX = ".minisig"

_ALG_PURE = b"Ed"
_ALG_HASHED = b"ED"
_UNTRUSTED_PREFIX = "untrusted comment:"
_TRUSTED_PREFIX = "trusted comment: "


class SignatureFormatError(ValueError):
    """Raised when a minisign key or signature cannot be parsed."""

    pass


# ============================================================================
# Checksums
# ============================================================================


def compute_file_hash(
    file_path: Path,
    algorithm: str = "sha256",
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> str:
    """
    Compute cryptographic hash of file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm ('sha256', 'sha512')
        progress_callback: Optional progress callback (bytes_read, total_bytes)

    Returns:
        Hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is not supported

    Example:
        >>> hash_value = compute_file_hash(Path('zig-linux-x86_64-0.11.0.tar.xz'))
        >>> print(f"SHA256: {hash_value}")
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    algorithm = algorithm.lower()

    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "sha512":
        hasher = hashlib.sha512()
    else:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    file_size = file_path.stat().st_size
    bytes_read = 0

    with open(file_path, "rb") as f:
        while chunk := f.read(65536):
            hasher.update(chunk)
            bytes_read += len(chunk)

            if progress_callback:
                progress_callback(bytes_read, file_size)

    return hasher.hexdigest()


def verify_checksum(file_path: Path, expected_hex_digest: str) -> bool:
    """
    Verify a file's SHA-256 digest against an expected hex string.

    The comparison is case-insensitive and constant-time. A malformed
    expected digest never matches.

    Args:
        file_path: Path to file
        expected_hex_digest: Expected SHA-256 digest (hex string)

    Returns:
        True if digest matches, False otherwise

    Raises:
        FileNotFoundError: If file doesn't exist

    Example:
        >>> if verify_checksum(Path('zig.tar.xz'), artifact.shasum):
        ...     print("Checksum OK")
    """
    expected = (expected_hex_digest or "").strip().lower()
    if not _is_valid_sha256(expected):
        logger.error(f"Invalid SHA-256 digest format: {expected_hex_digest!r}")
        return False

    actual = compute_file_hash(file_path, "sha256")
    return _constant_time_compare(actual, expected)


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _is_valid_sha256(hash_str: str) -> bool:
    return len(hash_str) == 64 and all(c in "0123456789abcdef" for c in hash_str)


# ============================================================================
# minisign
# ============================================================================


@dataclass(frozen=True)
class MinisignPublicKey:
    """A parsed minisign Ed25519 public key."""

    key_id: bytes
    public_key: bytes

    @classmethod
    def from_text(cls, text: str) -> "MinisignPublicKey":
        """
        Parse a public key from its base64 form or a ``.pub`` file body.

        Raises:
            SignatureFormatError: If the key is malformed
        """
        lines = [
            line.strip()
            for line in text.strip().splitlines()
            if line.strip() and not line.strip().startswith(_UNTRUSTED_PREFIX)
        ]
        if len(lines) != 1:
            raise SignatureFormatError("Public key must be a single base64 line")

        raw = _b64decode(lines[0], "public key")
        if len(raw) != 42:
            raise SignatureFormatError(f"Public key has invalid length {len(raw)}")
        if raw[:2] != _ALG_PURE:
            raise SignatureFormatError(f"Unsupported public key algorithm {raw[:2]!r}")

        return cls(key_id=raw[2:10], public_key=raw[10:])

    def verifier(self) -> Ed25519PublicKey:
        return Ed25519PublicKey.from_public_bytes(self.public_key)


@dataclass(frozen=True)
class MinisignSignature:
    """A parsed minisign detached signature."""

    algorithm: bytes
    key_id: bytes
    signature: bytes
    trusted_comment: str
    global_signature: bytes

    @property
    def prehashed(self) -> bool:
        return self.algorithm == _ALG_HASHED

    @classmethod
    def from_bytes(cls, data: Union[bytes, str]) -> "MinisignSignature":
        """
        Parse a ``.minisig`` file body.

        Raises:
            SignatureFormatError: If the signature is malformed
        """
        if isinstance(data, bytes):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise SignatureFormatError("Signature is not valid UTF-8") from e

        lines = [line.rstrip("\r") for line in data.strip().split("\n")]
        if len(lines) < 4:
            raise SignatureFormatError(
                f"Signature must have 4 lines, found {len(lines)}"
            )
        if not lines[0].startswith(_UNTRUSTED_PREFIX):
            raise SignatureFormatError("Missing untrusted comment line")
        if not lines[2].startswith(_TRUSTED_PREFIX):
            raise SignatureFormatError("Missing trusted comment line")

        raw = _b64decode(lines[1].strip(), "signature")
        if len(raw) != 74:
            raise SignatureFormatError(f"Signature has invalid length {len(raw)}")
        algorithm = raw[:2]
        if algorithm not in (_ALG_PURE, _ALG_HASHED):
            raise SignatureFormatError(f"Unsupported signature algorithm {algorithm!r}")

        global_signature = _b64decode(lines[3].strip(), "global signature")
        if len(global_signature) != 64:
            raise SignatureFormatError(
                f"Global signature has invalid length {len(global_signature)}"
            )

        return cls(
            algorithm=algorithm,
            key_id=raw[2:10],
            signature=raw[10:],
            trusted_comment=lines[2][len(_TRUSTED_PREFIX):],
            global_signature=global_signature,
        )


def _b64decode(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SignatureFormatError(f"Invalid base64 in {what}") from e


def _blake2b_file(file_path: Path) -> bytes:
    hasher = hashlib.blake2b(digest_size=64)
    with open(file_path, "rb") as f:
        while chunk := f.read(65536):
            hasher.update(chunk)
    return hasher.digest()


def verify_signature(
    file_path: Path,
    signature_bytes: Union[bytes, str],
    public_key_text: str = ZIG_MINISIGN_PUBLIC_KEY,
) -> bool:
    """
    Verify a minisign detached signature over a file.

    Args:
        file_path: Path to the signed file
        signature_bytes: Contents of the ``.minisig`` file
        public_key_text: Trusted public key (defaults to the Zig release key)

    Returns:
        True only if the key ids match, the file signature is valid and
        the global signature over the trusted comment is valid. Every
        other outcome, including unparsable input, returns False.

    Example:
        >>> sig = Path('zig.tar.xz.minisig').read_bytes()
        >>> if not verify_signature(Path('zig.tar.xz'), sig):
        ...     print("Do not trust this file")
    """
    try:
        public_key = MinisignPublicKey.from_text(public_key_text)
        signature = MinisignSignature.from_bytes(signature_bytes)

        if signature.key_id != public_key.key_id:
            logger.warning(
                f"Signature key id {signature.key_id.hex()} does not match "
                f"trusted key id {public_key.key_id.hex()}"
            )
            return False

        if signature.prehashed:
            message = _blake2b_file(Path(file_path))
        else:
            message = Path(file_path).read_bytes()

        verifier = public_key.verifier()
        verifier.verify(signature.signature, message)
        verifier.verify(
            signature.global_signature,
            signature.signature + signature.trusted_comment.encode("utf-8"),
        )

    except SignatureFormatError as e:
        logger.warning(f"Malformed minisign data for {file_path}: {e}")
        return False
    except InvalidSignature:
        logger.warning(f"Invalid signature for {file_path}")
        return False
    except (OSError, ValueError) as e:
        logger.warning(f"Could not verify signature for {file_path}: {e}")
        return False

    logger.debug(f"Signature verified for {file_path} ({signature.trusted_comment})")
    return True


def signature_url_for(artifact_url: str) -> str:
    """
    Derive the detached-signature URL for an artifact URL.

    The query string is stripped, the ``.minisig`` suffix appended to the
    path and the same query string re-appended.

    Example:
        >>> signature_url_for("https://m.example/zig.tar.xz?source=zigkit")
        'https://m.example/zig.tar.xz.minisig?source=zigkit'
    """
    parts = urlsplit(artifact_url)
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path + SIGNATURE_SUFFIX, parts.query, "")
    )
