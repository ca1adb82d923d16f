"""Distro Rootfs - resolve, download, verify and cache Linux root filesystems.

This package turns a (distribution, version, architecture) triple into a
verified rootfs archive in a local cache, using either the LXC Images
unified index or the official per-distribution download servers.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
