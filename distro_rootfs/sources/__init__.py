"""Rootfs source resolution module.

This module handles:
- Checksum file grammars (single-entry, GNU, BSD)
- Official per-distribution download templates
- LXC Images mirror selection
- Unified (Simplestreams) image index lookup
"""

from distro_rootfs.sources.checksums import parse_checksum
from distro_rootfs.sources.index import VARIANT_PRIORITY, IndexClient, SimplestreamsIndex
from distro_rootfs.sources.mirrors import Mirror
from distro_rootfs.sources.templates import (
    ResolutionSpec,
    TemplateProvider,
    get_official_provider,
    resolve_official,
)

__all__ = [
    # Checksums
    "parse_checksum",
    # Unified index
    "IndexClient",
    "SimplestreamsIndex",
    "VARIANT_PRIORITY",
    # Mirrors
    "Mirror",
    # Templates
    "ResolutionSpec",
    "TemplateProvider",
    "get_official_provider",
    "resolve_official",
]
