"""Rootfs cache engine.

This module handles:
- Verified lookup of cached archives (corrupted entries are evicted)
- Atomic storage of downloaded archives with their metadata
- Listing and count-based pruning of cache entries
- Cache size accounting

Layout::

    <cache_dir>/<distro>/<version>/<arch>/
        metadata.json
        <archive filename>

The directory path is the index; there is no catalog file. Hidden
directories directly under the cache root (such as ``.locks``) are not
entries.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
import time
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from distro_rootfs.errors import MetadataError
from distro_rootfs.rootfs.extract import extract_archive
from distro_rootfs.rootfs.fetch import DownloadResult

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"

# Chunk size for streaming verification (bytes)
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB


class CacheMetadata(BaseModel):
    """Contents of an entry's ``metadata.json``.

    Attributes:
        distro: Canonical distro slug.
        version: Version string.
        arch: Architecture (kernel naming).
        sha256: SHA256 of the archive (lowercase hex).
        filename: Archive filename within the entry directory.
        size: Archive size in bytes.
        downloaded_at: Download time as decimal epoch seconds.
    """

    model_config = ConfigDict(extra="ignore")

    distro: str
    version: str
    arch: str
    sha256: str
    filename: str
    size: int
    downloaded_at: str

    @field_validator("downloaded_at")
    @classmethod
    def validate_downloaded_at(cls, v: str) -> str:
        """Validate downloaded_at is a decimal epoch-seconds string."""
        if not (v.isascii() and v.isdecimal()):
            raise ValueError(f"downloaded_at must be decimal epoch seconds, got '{v}'")
        return v

    @property
    def downloaded_epoch(self) -> int:
        """Ordering key for pruning."""
        return int(self.downloaded_at)


@dataclass
class CachedRootfs:
    """Handle to a cached rootfs archive."""

    archive_path: Path
    metadata: CacheMetadata

    @property
    def entry_dir(self) -> Path:
        """The entry directory containing the archive and metadata."""
        return self.archive_path.parent

    def verify_integrity(self) -> bool:
        """Recompute the archive's SHA256 and compare it to the metadata."""
        if not self.archive_path.is_file():
            return False
        return compute_file_sha256(self.archive_path) == self.metadata.sha256.lower()

    def extract_to(self, dest_dir: Path) -> Path:
        """Extract the archive into ``dest_dir``.

        Raises:
            UnsupportedArchiveFormatError: If the archive format is unknown.
            ExtractionError: If extraction fails.
        """
        return extract_archive(self.archive_path, dest_dir)


def compute_file_sha256(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Hex SHA256 of a cached archive, read in ``chunk_size`` blocks.

    Used on every cache hit, so the archive is never loaded whole.
    """
    digest = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            digest.update(chunk)
    return digest.hexdigest()


def read_metadata(entry_dir: Path) -> CacheMetadata | None:
    """Read an entry's metadata.

    Returns:
        Parsed metadata, or None if the file does not exist.

    Raises:
        MetadataError: If the file exists but cannot be decoded.
    """
    meta_path = entry_dir / METADATA_FILENAME
    if not meta_path.is_file():
        return None

    try:
        return CacheMetadata.model_validate_json(meta_path.read_bytes())
    except ValidationError as e:
        raise MetadataError(str(meta_path), f"{e.error_count()} validation error(s)") from e


def load_entry(entry_dir: Path) -> CachedRootfs | None:
    """Load a cache entry without verifying its archive.

    Returns:
        CachedRootfs, or None if metadata or archive is missing.

    Raises:
        MetadataError: If metadata.json cannot be decoded.
    """
    metadata = read_metadata(entry_dir)
    if metadata is None:
        return None

    archive_path = entry_dir / metadata.filename
    if not archive_path.is_file():
        return None

    return CachedRootfs(archive_path=archive_path, metadata=metadata)


def load_cached(entry_dir: Path) -> CachedRootfs | None:
    """Look up a cache entry, verifying the archive's integrity.

    A corrupted entry is removed and reported as a miss. Failure to remove
    it is logged and does not change the result.

    Returns:
        Verified CachedRootfs, or None on miss or corruption.

    Raises:
        MetadataError: If metadata.json cannot be decoded.
    """
    entry = load_entry(entry_dir)
    if entry is None:
        return None

    if entry.verify_integrity():
        logger.debug("Cache entry verified: %s", entry_dir)
        return entry

    logger.warning("Cache entry corrupted, evicting: %s", entry_dir)
    try:
        shutil.rmtree(entry_dir)
    except OSError as e:
        logger.error("Failed to evict %s: %s", entry_dir, e)
    return None


def _write_atomic(dest_path: Path, data: bytes) -> None:
    with tempfile.NamedTemporaryFile(
        dir=dest_path.parent, suffix=".tmp", delete=False
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)
        try:
            tmp_file.write(data)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    try:
        os.replace(tmp_path, dest_path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def store(entry_dir: Path, result: DownloadResult) -> CachedRootfs:
    """Store a verified download in a cache entry.

    The distro, version and arch recorded in the metadata are taken from the
    last three components of ``entry_dir``, padded with "unknown" when the
    path is shorter. The archive is written before the metadata, so an
    interrupted store never leaves metadata pointing at a partial archive.

    Args:
        entry_dir: Entry directory (``<cache>/<distro>/<version>/<arch>``).
        result: Verified download.

    Returns:
        Handle to the stored entry.
    """
    # Components missing from a short path are recorded as "unknown"
    distro, version, arch = (("unknown",) * 3 + entry_dir.parts)[-3:]
    entry_dir.mkdir(parents=True, exist_ok=True)

    try:
        previous = read_metadata(entry_dir)
    except MetadataError:
        # Overwritten below
        previous = None

    archive_path = entry_dir / result.filename
    _write_atomic(archive_path, result.data)

    metadata = CacheMetadata(
        distro=distro,
        version=version,
        arch=arch,
        sha256=result.sha256,
        filename=result.filename,
        size=result.size,
        downloaded_at=str(int(time.time())),
    )
    _write_atomic(
        entry_dir / METADATA_FILENAME,
        metadata.model_dump_json(indent=2).encode(),
    )

    if previous is not None and previous.filename != result.filename:
        (entry_dir / previous.filename).unlink(missing_ok=True)

    logger.info(
        "Cached %s %s (%s) at %s (%d bytes)",
        distro,
        version,
        arch,
        archive_path,
        result.size,
    )
    return CachedRootfs(archive_path=archive_path, metadata=metadata)


def _subdirs(path: Path) -> list[Path]:
    return sorted(p for p in path.iterdir() if p.is_dir() and not p.name.startswith("."))


def list_all(cache_dir: Path) -> list[CachedRootfs]:
    """List all cache entries without verifying them.

    Returns:
        Entries sorted by distro, version and arch; empty if the cache root
        does not exist.

    Raises:
        MetadataError: If an entry's metadata.json cannot be decoded.
    """
    if not cache_dir.is_dir():
        return []

    entries: list[CachedRootfs] = []
    for distro_dir in _subdirs(cache_dir):
        for version_dir in _subdirs(distro_dir):
            for arch_dir in _subdirs(version_dir):
                entry = load_entry(arch_dir)
                if entry is not None:
                    entries.append(entry)
    return entries


def prune(cache_dir: Path, keep_latest: int) -> int:
    """Remove all but the newest ``keep_latest`` entries of each distro.

    Args:
        cache_dir: Root cache directory.
        keep_latest: Entries to keep per distro (by download time).

    Returns:
        Total archive bytes freed. Entries that fail to be removed are
        logged and not counted.

    Raises:
        ValueError: If keep_latest is negative.
    """
    if keep_latest < 0:
        raise ValueError(f"keep_latest must be >= 0, got {keep_latest}")

    by_distro: dict[str, list[CachedRootfs]] = defaultdict(list)
    for entry in list_all(cache_dir):
        by_distro[entry.metadata.distro].append(entry)

    freed = 0
    for distro, entries in sorted(by_distro.items()):
        entries.sort(key=lambda e: e.metadata.downloaded_epoch, reverse=True)

        for entry in entries[keep_latest:]:
            logger.info(
                "Pruning %s %s (%s)",
                distro,
                entry.metadata.version,
                entry.metadata.arch,
            )
            try:
                shutil.rmtree(entry.entry_dir)
            except OSError as e:
                logger.error("Failed to prune %s: %s", entry.entry_dir, e)
                continue
            freed += entry.metadata.size

    return freed


def get_cache_size(cache_dir: Path) -> int:
    """Total on-disk size of the cache root in bytes.

    Counts every regular file under ``cache_dir``: archives, metadata
    sidecars, leftover ``.tmp`` files from interrupted stores and the lock
    files under ``.locks``. Returns 0 if the root does not exist.
    """
    if not cache_dir.is_dir():
        return 0
    return sum(p.stat().st_size for p in cache_dir.rglob("*") if p.is_file())


__all__ = [
    "CacheMetadata",
    "CachedRootfs",
    "HASH_CHUNK_SIZE",
    "METADATA_FILENAME",
    "compute_file_sha256",
    "get_cache_size",
    "list_all",
    "load_cached",
    "load_entry",
    "prune",
    "read_metadata",
    "store",
]
