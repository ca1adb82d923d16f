"""Rootfs fetch module.

This module handles:
- Streaming downloads with progress reporting
- Checksum file retrieval
- SHA256/SHA512 verification of downloaded data
- End-to-end download flows for the unified index and official servers

Downloads are held in memory until verified; nothing touches the cache
directory before the checksum matches.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from distro_rootfs.distros import Distro
from distro_rootfs.errors import ChecksumMismatchError, DownloadError
from distro_rootfs.sources.index import INDEX_TIMEOUT, IndexClient
from distro_rootfs.sources.mirrors import Mirror
from distro_rootfs.sources.templates import resolve_official
from distro_rootfs.types import Arch, HashAlgorithm, ResolvedImage

logger = logging.getLogger(__name__)

# Timeout for checksum file requests (seconds)
CHECKSUM_TIMEOUT = 30

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 3600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

ProgressCallback = Callable[[int, int], None]


@dataclass
class DownloadResult:
    """Result of a rootfs download.

    ``sha256`` is always computed; ``sha512`` only when first requested.
    """

    data: bytes
    sha256: str
    filename: str
    _sha512: str | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_bytes(cls, data: bytes, filename: str) -> DownloadResult:
        """Create a result, computing the primary digest."""
        return cls(data=data, sha256=hashlib.sha256(data).hexdigest(), filename=filename)

    @property
    def sha512(self) -> str:
        """SHA512 hex digest of the data (memoised)."""
        if self._sha512 is None:
            self._sha512 = hashlib.sha512(self.data).hexdigest()
        return self._sha512

    @property
    def size(self) -> int:
        """Payload size in bytes."""
        return len(self.data)

    def digest(self, algorithm: HashAlgorithm) -> str:
        """Return the hex digest for the given algorithm."""
        if algorithm is HashAlgorithm.SHA512:
            return self.sha512
        return self.sha256


def download_url(
    client: httpx.Client,
    url: str,
    on_progress: ProgressCallback | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> bytes:
    """Download a URL into memory.

    Args:
        client: HTTPX client instance.
        url: URL to download from.
        on_progress: Called with (downloaded, total) after every chunk;
            total is 0 when the server sends no Content-Length.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.

    Returns:
        The response body.

    Raises:
        DownloadError: If the download fails.
    """
    logger.info("Downloading %s", url)

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()

            total = int(response.headers.get("content-length") or 0)
            downloaded = 0
            buffer = bytearray()

            for chunk in response.iter_bytes(chunk_size):
                buffer.extend(chunk)
                downloaded += len(chunk)
                if on_progress is not None:
                    on_progress(downloaded, total)

    except httpx.HTTPStatusError as e:
        raise DownloadError(
            f"HTTP error downloading {url}: {e.response.status_code} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(
            f"Timeout downloading {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error downloading {url}: {e}",
            code="network_error",
        ) from e

    logger.info("Downloaded %s (%d bytes)", url.rsplit("/", 1)[-1], downloaded)
    return bytes(buffer)


def fetch_text(
    client: httpx.Client,
    url: str,
    timeout: float = CHECKSUM_TIMEOUT,
) -> str:
    """Fetch a small text document such as a checksum file.

    Raises:
        DownloadError: If the fetch fails.
    """
    logger.debug("Fetching %s", url)

    try:
        response = client.get(url, timeout=timeout)
        response.raise_for_status()
        return response.text

    except httpx.HTTPStatusError as e:
        raise DownloadError(
            f"HTTP error fetching {url}: {e.response.status_code}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(
            f"Timeout fetching {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error fetching {url}: {e}",
            code="network_error",
        ) from e


def verify_index_checksum(
    result: DownloadResult, expected: str, url: str | None = None
) -> None:
    """Verify a download against a SHA256 hash from the unified index.

    Raises:
        ChecksumMismatchError: If the hashes differ.
    """
    verify_checksum(result, expected, HashAlgorithm.SHA256, url)


def verify_checksum(
    result: DownloadResult,
    expected: str,
    algorithm: HashAlgorithm,
    url: str | None = None,
) -> None:
    """Verify a download against an expected hash.

    Args:
        result: Downloaded data.
        expected: Expected hex digest (case-insensitive).
        algorithm: Algorithm the expected hash was computed with.
        url: Source URL, included in the error message.

    Raises:
        ChecksumMismatchError: If the hashes differ.
    """
    actual = result.digest(algorithm)
    if actual != expected.lower():
        raise ChecksumMismatchError(expected.lower(), actual, url)

    logger.info(
        "Verified %s (%s: %s)",
        result.filename,
        algorithm.value,
        actual[:16] + "...",
    )


def download_resolved(
    client: httpx.Client,
    resolved: ResolvedImage,
    on_progress: ProgressCallback | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DownloadResult:
    """Download a resolved image and verify it when a checksum is known.

    Raises:
        DownloadError: If the download fails.
        ChecksumMismatchError: If verification fails.
    """
    data = download_url(client, resolved.url, on_progress=on_progress, timeout=timeout)
    result = DownloadResult.from_bytes(data, resolved.filename)

    if resolved.checksum:
        verify_checksum(result, resolved.checksum, resolved.algorithm, resolved.url)
    else:
        logger.warning("No checksum available for %s; skipping verification", resolved.url)

    return result


def download_from_index(
    client: httpx.Client,
    distro: Distro,
    version: str,
    arch: Arch,
    mirror: Mirror | None = None,
    on_progress: ProgressCallback | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    index_timeout: float = INDEX_TIMEOUT,
) -> DownloadResult:
    """Resolve a rootfs through the unified index, download and verify it.

    Args:
        client: HTTPX client instance.
        distro: Distribution.
        version: Version string.
        arch: Target architecture.
        mirror: Index mirror (official if not provided).
        on_progress: Progress callback, see ``download_url``.
        timeout: Download timeout in seconds.
        index_timeout: Index request timeout in seconds.

    Returns:
        Verified DownloadResult.

    Raises:
        DownloadError: If the index or the archive cannot be fetched.
        IndexFormatError: If the index is malformed.
        ProductNotFoundError: If the index has no matching product.
        RootfsNotFoundError: If the product has no rootfs archive.
        ChecksumMismatchError: If verification fails.
    """
    index_client = IndexClient(mirror, client=client, timeout=index_timeout)
    resolved = index_client.resolve(distro, version, arch)
    logger.info(
        "Resolved %s %s (%s) to %s [%s]",
        distro.value,
        version,
        arch.value,
        resolved.url,
        resolved.details.get("build", ""),
    )
    data = download_url(client, resolved.url, on_progress=on_progress, timeout=timeout)
    result = DownloadResult.from_bytes(data, resolved.filename)
    verify_index_checksum(result, resolved.checksum or "", resolved.url)
    return result


def download_official(
    client: httpx.Client,
    distro: Distro,
    version: str,
    arch: Arch,
    on_progress: ProgressCallback | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> DownloadResult:
    """Download a rootfs from the distribution's official server.

    The archive is verified with the distribution's own checksum file and
    algorithm when one is published.

    Raises:
        UnsupportedDistroError: If the distro has no official template.
        UnsupportedVersionError: If the version cannot fill the URL templates.
        DownloadError: If a transfer fails.
        ChecksumParseError: If the checksum file lists no entry for the archive.
        ChecksumMismatchError: If verification fails.
    """
    resolved = resolve_official(client, distro, version, arch)
    logger.info("Resolved %s %s (%s) to %s", distro.value, version, arch.value, resolved.url)
    return download_resolved(client, resolved, on_progress=on_progress, timeout=timeout)


__all__ = [
    "CHECKSUM_TIMEOUT",
    "DOWNLOAD_CHUNK_SIZE",
    "DOWNLOAD_TIMEOUT",
    "DownloadResult",
    "ProgressCallback",
    "download_from_index",
    "download_official",
    "download_resolved",
    "download_url",
    "fetch_text",
    "verify_checksum",
    "verify_index_checksum",
]
