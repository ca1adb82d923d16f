"""Rootfs service module.

This module provides the high-level API for rootfs management:
- RootfsManager.ensure(): Ensure a verified rootfs is available in the cache
- RootfsManager.lookup(): Verified cache lookup without downloading
- RootfsManager.list_cached(): List cached rootfs archives
- RootfsManager.prune(): Remove old cache entries
- RootfsManager.cache_info(): Report cache location and size

Downloads use a per-entry file lock so that concurrent callers, in this or
another process, fetch a given rootfs at most once.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from distro_rootfs.config import get_settings
from distro_rootfs.distros import Distro
from distro_rootfs.errors import (
    OfflineModeError,
    RootfsError,
    UnsupportedVersionError,
)
from distro_rootfs.rootfs.cache import (
    CachedRootfs,
    get_cache_size,
    list_all,
    load_cached,
    store,
)
from distro_rootfs.rootfs.cache import prune as prune_cache
from distro_rootfs.rootfs.fetch import (
    DownloadResult,
    ProgressCallback,
    download_from_index,
    download_official,
)
from distro_rootfs.sources.mirrors import Mirror
from distro_rootfs.types import Arch, Source

if TYPE_CHECKING:
    from distro_rootfs.config import Settings

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".locks"


@contextmanager
def entry_lock(
    cache_dir: Path,
    distro: Distro,
    version: str,
    arch: Arch,
    timeout: float | None = None,
) -> Iterator[None]:
    """Hold the exclusive download lock for one cache entry.

    The lock is an ``flock`` on ``<cache_dir>/.locks/<distro>_<version>_<arch>.lock``,
    so it serialises ``ensure()`` across threads and processes that share a
    cache root. Locks for different entries never contend. Lock files are left
    in place after release.

    Args:
        cache_dir: Root cache directory.
        distro: Distribution of the entry.
        version: Version of the entry.
        arch: Architecture of the entry.
        timeout: Seconds to wait before giving up (None waits forever).

    Raises:
        TimeoutError: If another holder keeps the lock past ``timeout``.
    """
    lock_dir = cache_dir / LOCK_DIR_NAME
    lock_dir.mkdir(parents=True, exist_ok=True)

    name = f"{distro.value}/{version}/{arch.value}"
    lock_file = lock_dir / f"{distro.value}_{version}_{arch.value}.lock".replace("/", "_")

    logger.debug("Acquiring lock for %s", name)

    fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError as e:
                    if time.monotonic() - start >= timeout:
                        raise TimeoutError(f"Timeout waiting for lock on {name}") from e
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)

        logger.debug("Lock acquired for %s", name)
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        logger.debug("Lock released for %s", name)


class RootfsManager:
    """Resolves, downloads and caches rootfs archives."""

    def __init__(
        self,
        cache_dir: Path | None = None,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize RootfsManager.

        Args:
            cache_dir: Cache root (overrides settings.cache_dir).
            settings: Application settings (uses defaults if not provided).
            client: HTTPX client (one is created per download if not provided).
        """
        self.settings = settings or get_settings()
        self.cache_dir = cache_dir or self.settings.cache_dir
        self.client = client

    def entry_dir(self, distro: Distro, version: str, arch: Arch) -> Path:
        """Return the cache directory for a distro/version/arch.

        Raises:
            UnsupportedVersionError: If the version cannot be a single path
                component.
        """
        if not version or "/" in version or version in (".", ".."):
            raise UnsupportedVersionError(distro.value, version)
        return self.cache_dir / distro.value / version / arch.value

    def lookup(
        self,
        distro: Distro,
        version: str | None = None,
        arch: Arch | None = None,
    ) -> CachedRootfs | None:
        """Return a verified cached rootfs, or None.

        Corrupted entries are evicted and reported as a miss.
        """
        version = version or distro.default_version
        arch = arch or Arch.current()
        return load_cached(self.entry_dir(distro, version, arch))

    def ensure(
        self,
        distro: Distro,
        version: str | None = None,
        arch: Arch | None = None,
        mirror: Mirror | None = None,
        on_progress: ProgressCallback | None = None,
        source: Source | None = None,
        force: bool = False,
    ) -> CachedRootfs:
        """Ensure a verified rootfs is available in the cache.

        This is the main entry point for rootfs management. It:
        1. Returns the cached entry if present and intact
        2. Otherwise acquires the entry lock and re-checks the cache
        3. Downloads and verifies the archive
        4. Stores it and returns the new entry

        Args:
            distro: Distribution.
            version: Version (distro default if not provided).
            arch: Architecture (host architecture if not provided).
            mirror: Index mirror (from settings if not provided).
            on_progress: Called with (downloaded, total) during the download.
            source: Where to resolve from (from settings if not provided).
            force: Re-download even if a valid entry exists.

        Returns:
            CachedRootfs handle.

        Raises:
            OfflineModeError: If a download is required in offline mode.
            TimeoutError: If the entry lock cannot be acquired in time.
            DownloadError: If a transfer fails.
            ChecksumMismatchError: If verification fails.
            RootfsError: For resolution failures (unknown product, etc.).
        """
        version = version or distro.default_version
        arch = arch or Arch.current()
        entry_dir = self.entry_dir(distro, version, arch)

        if not force:
            cached = load_cached(entry_dir)
            if cached is not None:
                logger.info("Using cached rootfs: %s %s (%s)", distro.value, version, arch.value)
                return cached

        if self.settings.offline:
            raise OfflineModeError(
                f"Cannot download rootfs {distro.value} {version} ({arch.value}) "
                "in offline mode"
            )

        with entry_lock(
            self.cache_dir, distro, version, arch, timeout=self.settings.lock_timeout
        ):
            # Re-check after acquiring lock (another process may have downloaded)
            if not force:
                cached = load_cached(entry_dir)
                if cached is not None:
                    logger.info(
                        "Rootfs became available while waiting for lock: %s %s (%s)",
                        distro.value,
                        version,
                        arch.value,
                    )
                    return cached

            result = self._download(
                distro,
                version,
                arch,
                mirror=mirror,
                on_progress=on_progress,
                source=source or self.settings.source,
            )
            return store(entry_dir, result)

    def _download(
        self,
        distro: Distro,
        version: str,
        arch: Arch,
        mirror: Mirror | None,
        on_progress: ProgressCallback | None,
        source: Source,
    ) -> DownloadResult:
        manage_client = self.client is None
        http_client = httpx.Client(follow_redirects=True) if manage_client else self.client

        try:
            if source is Source.OFFICIAL:
                return download_official(
                    http_client,
                    distro,
                    version,
                    arch,
                    on_progress=on_progress,
                    timeout=self.settings.download_timeout,
                )
            return download_from_index(
                http_client,
                distro,
                version,
                arch,
                mirror=mirror or self.settings.get_mirror(),
                on_progress=on_progress,
                timeout=self.settings.download_timeout,
                index_timeout=self.settings.index_timeout,
            )
        except RootfsError as e:
            logger.error(
                "Failed to download rootfs %s %s (%s): %s",
                distro.value,
                version,
                arch.value,
                e,
            )
            raise
        finally:
            if manage_client:
                http_client.close()

    def list_cached(self) -> list[CachedRootfs]:
        """List all cache entries (not verified)."""
        return list_all(self.cache_dir)

    def prune(self, keep_latest: int | None = None) -> int:
        """Keep the newest entries per distro and remove the rest.

        Args:
            keep_latest: Entries to keep per distro (from settings if not
                provided).

        Returns:
            Archive bytes freed.
        """
        if keep_latest is None:
            keep_latest = self.settings.keep_latest
        freed = prune_cache(self.cache_dir, keep_latest)
        logger.info("Pruned rootfs cache, freed %s", format_size(freed))
        return freed

    def cache_info(self) -> dict[str, object]:
        """Get information about the rootfs cache.

        Returns:
            Dictionary with cache information.
        """
        total_size = get_cache_size(self.cache_dir)
        entries = self.list_cached()

        return {
            "cache_dir": str(self.cache_dir),
            "entries": len(entries),
            "total_size_bytes": total_size,
            "total_size_human": format_size(total_size),
            "exists": self.cache_dir.exists(),
        }


def format_size(size_bytes: int) -> str:
    """Format bytes as human-readable size."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


__all__ = [
    "LOCK_DIR_NAME",
    "RootfsManager",
    "entry_lock",
    "format_size",
]
