"""Shared type definitions for distro_rootfs.

This module contains enums, dataclasses and ordering keys shared across
subpackages to avoid circular imports.
"""

from __future__ import annotations

import platform
import re
from dataclasses import dataclass, field
from enum import Enum

from distro_rootfs.errors import UnsupportedArchError


class Arch(str, Enum):
    """Target CPU architecture for rootfs images."""

    AARCH64 = "aarch64"
    X86_64 = "x86_64"

    @property
    def linux_name(self) -> str:
        """Architecture name used by the Linux kernel and most distros."""
        return self.value

    @property
    def deb_name(self) -> str:
        """Debian/Ubuntu-style architecture name."""
        return {Arch.AARCH64: "arm64", Arch.X86_64: "amd64"}[self]

    @property
    def index_name(self) -> str:
        """Architecture name used by the unified image index (Debian style)."""
        return self.deb_name

    @classmethod
    def parse(cls, value: str) -> Arch:
        """Parse any rendering of an architecture name.

        Args:
            value: Kernel-style ('aarch64') or Debian-style ('arm64') name.

        Returns:
            Matching Arch member.

        Raises:
            UnsupportedArchError: If the name is not recognized.
        """
        normalized = value.strip().lower()
        aliases = {
            "aarch64": cls.AARCH64,
            "arm64": cls.AARCH64,
            "x86_64": cls.X86_64,
            "amd64": cls.X86_64,
        }
        try:
            return aliases[normalized]
        except KeyError:
            raise UnsupportedArchError(value) from None

    @classmethod
    def current(cls) -> Arch:
        """Detect the host architecture."""
        return cls.parse(platform.machine())

    def __str__(self) -> str:
        return self.value


class HashAlgorithm(str, Enum):
    """Hash algorithm used by a checksum source."""

    SHA256 = "sha256"
    SHA512 = "sha512"


class ChecksumFormat(str, Enum):
    """Grammar of a checksum file."""

    SINGLE_ENTRY = "single-entry"
    GNU = "gnu"
    BSD = "bsd"


class ArchNaming(str, Enum):
    """How the architecture appears in download URLs."""

    LINUX = "linux"
    DEBIAN = "debian"

    def resolve(self, arch: Arch) -> str:
        """Render an architecture using this naming convention."""
        if self is ArchNaming.DEBIAN:
            return arch.deb_name
        return arch.linux_name


class VersionTransform(str, Enum):
    """How to derive ``{major_minor}`` from a version string."""

    IDENTITY = "identity"
    MAJOR_MINOR = "major-minor"


class Source(str, Enum):
    """Where rootfs archives are resolved from."""

    INDEX = "index"
    OFFICIAL = "official"


_DIGIT_RUN = re.compile(r"\d+")


@dataclass(frozen=True, order=True)
class BuildSerial:
    """Ordering key for unified-index build timestamps.

    Build keys look like ``20260218_07:42``. The numeric fields are compared
    as integers so that a change in zero padding cannot reorder builds; the
    raw string breaks ties.
    """

    numbers: tuple[int, ...]
    value: str

    @classmethod
    def parse(cls, value: str) -> BuildSerial:
        """Create an ordering key from a raw build timestamp string."""
        return cls(tuple(int(n) for n in _DIGIT_RUN.findall(value)), value)


@dataclass
class ResolvedImage:
    """A concrete download location with its expected checksum.

    Attributes:
        url: Absolute download URL.
        checksum: Expected hex digest (lowercase), or None if the source
            publishes no checksum.
        filename: Archive filename (last URL path segment).
        size: Expected size in bytes (0 when unknown).
        algorithm: Algorithm the checksum was computed with.
    """

    url: str
    checksum: str | None
    filename: str
    size: int = 0
    algorithm: HashAlgorithm = HashAlgorithm.SHA256
    details: dict[str, str] = field(default_factory=dict)


__all__ = [
    "Arch",
    "ArchNaming",
    "BuildSerial",
    "ChecksumFormat",
    "HashAlgorithm",
    "ResolvedImage",
    "Source",
    "VersionTransform",
]
