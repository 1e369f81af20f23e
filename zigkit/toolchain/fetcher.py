"""
Download orchestration across community mirrors and the origin.

For one artifact the orchestrator builds an ordered candidate list (a
weighted selection of ranked mirrors, then the ziglang.org origin) and
tries each candidate in turn:

1. stream the archive to the destination
2. fetch the detached ``.minisig`` signature from the same source
3. verify the signature against the Zig release key (always)
4. verify the SHA-256 checksum (when the index publishes one)

The first candidate that passes every step wins. A failing mirror is
penalized in the registry right away; the origin is never penalized. An
artifact that did not pass signature verification is never left on disk.
"""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import requests

from zigkit.core.download import ProgressCallback, download_file, fetch_bytes
from zigkit.core.exceptions import (
    AllCandidatesFailedError,
    CandidateFailure,
    ChecksumMismatchError,
    DownloadError,
    SignatureVerificationError,
    ZigkitError,
)
from zigkit.core.settings import DEFAULT_SOURCE_TAG
from zigkit.core.verification import (
    ZIG_MINISIGN_PUBLIC_KEY,
    compute_file_hash,
    signature_url_for,
    verify_checksum,
    verify_signature,
)
from zigkit.mirrors.models import FailureClass
from zigkit.mirrors.registry import MirrorRegistry
from zigkit.toolchain.index import ArtifactInfo

logger = logging.getLogger(__name__)

DEFAULT_MAX_MIRRORS = 3

STAGE_DOWNLOAD = "download"
STAGE_SIGNATURE_FETCH = "signature-fetch"
STAGE_SIGNATURE = "signature"
STAGE_CHECKSUM = "checksum"

_STAGE_PENALTY = {
    STAGE_DOWNLOAD: FailureClass.TIMEOUT,
    STAGE_SIGNATURE_FETCH: FailureClass.SIGNATURE,
    STAGE_SIGNATURE: FailureClass.SIGNATURE,
    STAGE_CHECKSUM: FailureClass.CHECKSUM,
}


@dataclass
class FetchResult:
    """Provenance of a verified artifact."""

    path: Path
    """Where the verified artifact was written"""

    source_url: str
    """Candidate URL that produced the artifact"""

    mirror: Optional[str]
    """Mirror base URL, or None when the origin won"""

    checksum: str
    """SHA-256 digest of the artifact"""

    checksum_verified: bool
    """Whether the digest was compared against a published value"""

    signature: str
    """minisign signature text the artifact verified against"""

    signature_verified: bool = True


class _CandidateFailed(Exception):
    def __init__(self, stage: str, error: ZigkitError):
        self.stage = stage
        self.error = error
        super().__init__(f"{stage}: {error}")


def mirror_artifact_url(mirror_base: str, filename: str, source_tag: str) -> str:
    """
    URL of an artifact on a community mirror.

    Example:
        >>> mirror_artifact_url("https://m.example/zig/", "zig-0.11.0.tar.xz", "zigkit")
        'https://m.example/zig/zig-0.11.0.tar.xz?source=zigkit'
    """
    url = f"{mirror_base.rstrip('/')}/{filename}"
    if source_tag:
        url += f"?source={source_tag}"
    return url


class DownloadOrchestrator:
    """
    Fetches and verifies an artifact from mirrors with origin fallback.

    Attributes:
        registry: Mirror registry consulted for candidates and penalties
        max_mirrors: Number of mirrors tried before the origin
        timeout: Per-request timeout in seconds
        source_tag: Value of the ``source`` query parameter sent to mirrors
    """

    def __init__(
        self,
        registry: MirrorRegistry,
        max_mirrors: int = DEFAULT_MAX_MIRRORS,
        timeout: float = 30,
        source_tag: str = DEFAULT_SOURCE_TAG,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ):
        self.registry = registry
        self.max_mirrors = max_mirrors
        self.timeout = timeout
        self.source_tag = source_tag
        self.session = session
        self.rng = rng

    def candidates(self, origin_url: str) -> List[Tuple[str, Optional[str]]]:
        """
        Ordered ``(url, mirror_base)`` pairs to try; the origin comes last
        with ``mirror_base`` set to None.
        """
        filename = ArtifactInfo(url=origin_url, shasum=None).filename
        selected = self.registry.select_best(self.max_mirrors, rng=self.rng)
        result = [
            (mirror_artifact_url(base, filename, self.source_tag), base)
            for base in selected
        ]
        result.append((origin_url, None))
        return result

    def fetch_and_verify(
        self,
        origin_url: str,
        destination: Path,
        expected_checksum: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FetchResult:
        """
        Download ``origin_url`` (or a mirrored copy) to ``destination`` and
        verify it.

        Args:
            origin_url: Canonical ziglang.org URL of the artifact
            destination: File path to write the artifact to
            expected_checksum: SHA-256 from the index, if known
            progress_callback: Optional transfer progress callback

        Returns:
            FetchResult describing the winning candidate

        Raises:
            AllCandidatesFailedError: If no candidate passed verification.
                No file is left at ``destination``.
        """
        destination = Path(destination)
        failures = []
        last_error = None

        for url, mirror in self.candidates(origin_url):
            try:
                result = self._try_candidate(
                    url, mirror, destination, expected_checksum, progress_callback
                )
            except _CandidateFailed as e:
                failure = CandidateFailure(url, mirror, e.stage, str(e.error))
                failures.append(failure)
                last_error = e.error
                logger.warning(str(failure))
                destination.unlink(missing_ok=True)
                if mirror is not None:
                    self.registry.update_rank(mirror, _STAGE_PENALTY[e.stage])
                continue

            if mirror is None:
                logger.info(f"Downloaded and verified from origin {url}")
            else:
                logger.info(f"Downloaded and verified from mirror {mirror}")
            return result

        destination.unlink(missing_ok=True)
        logger.error(f"All {len(failures)} download candidates failed for {origin_url}")
        raise AllCandidatesFailedError(failures, last_error) from last_error

    def _try_candidate(
        self,
        url: str,
        mirror: Optional[str],
        destination: Path,
        expected_checksum: Optional[str],
        progress_callback: Optional[ProgressCallback],
    ) -> FetchResult:
        try:
            download_file(
                url,
                destination,
                progress_callback=progress_callback,
                timeout=self.timeout,
                session=self.session,
            )
        except DownloadError as e:
            raise _CandidateFailed(STAGE_DOWNLOAD, e) from e

        signature_url = signature_url_for(url)
        try:
            signature = fetch_bytes(
                signature_url, timeout=self.timeout, session=self.session
            )
        except DownloadError as e:
            error = SignatureVerificationError(f"Could not fetch signature: {e}")
            raise _CandidateFailed(STAGE_SIGNATURE_FETCH, error) from e

        if not verify_signature(destination, signature, ZIG_MINISIGN_PUBLIC_KEY):
            error = SignatureVerificationError(
                f"minisign verification failed ({signature_url})"
            )
            raise _CandidateFailed(STAGE_SIGNATURE, error)

        checksum = compute_file_hash(destination, "sha256")
        if expected_checksum is not None:
            if not verify_checksum(destination, expected_checksum):
                error = ChecksumMismatchError(
                    f"expected {expected_checksum.lower()}, got {checksum}"
                )
                raise _CandidateFailed(STAGE_CHECKSUM, error)

        return FetchResult(
            path=destination,
            source_url=url,
            mirror=mirror,
            checksum=checksum,
            checksum_verified=expected_checksum is not None,
            signature=signature.decode("utf-8", errors="replace"),
            signature_verified=True,
        )
