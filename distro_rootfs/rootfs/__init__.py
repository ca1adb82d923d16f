"""Rootfs download and cache management module.

This module handles:
- Downloading and verifying rootfs archives
- Storing verified archives in the cache with their metadata
- Integrity-checked cache lookup, listing and pruning
- Archive extraction
- Locking for concurrent download prevention
"""

from distro_rootfs.rootfs.cache import (
    CachedRootfs,
    CacheMetadata,
    list_all,
    load_cached,
    prune,
    store,
)
from distro_rootfs.rootfs.extract import ExtractFormat, extract_archive
from distro_rootfs.rootfs.fetch import (
    DownloadResult,
    download_from_index,
    download_official,
    download_url,
    verify_checksum,
    verify_index_checksum,
)
from distro_rootfs.rootfs.service import RootfsManager, entry_lock

__all__ = [
    # Cache
    "CacheMetadata",
    "CachedRootfs",
    "list_all",
    "load_cached",
    "prune",
    "store",
    # Extraction
    "ExtractFormat",
    "extract_archive",
    # Fetch
    "DownloadResult",
    "download_from_index",
    "download_official",
    "download_url",
    "verify_checksum",
    "verify_index_checksum",
    # Service
    "RootfsManager",
    "entry_lock",
]
