"""Distribution registry.

This module defines the closed set of supported distributions together with
their static metadata:
- Canonical slug (used in cache paths)
- Name in the LXC Images unified index
- Default version
- Version -> release name mapping used for index product keys

The release mapping here is independent of the codename tables used by the
official download templates in ``sources.templates``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from distro_rootfs.errors import UnsupportedDistroError, UnsupportedVersionError


class Distro(str, Enum):
    """Supported Linux distributions."""

    ALMA = "alma"
    ALPINE = "alpine"
    ARCH = "arch"
    CENTOS = "centos"
    DEBIAN = "debian"
    DEVUAN = "devuan"
    FEDORA = "fedora"
    GENTOO = "gentoo"
    KALI = "kali"
    NIXOS = "nixos"
    OPENEULER = "openeuler"
    OPENSUSE = "opensuse"
    ORACLE = "oracle"
    ROCKY = "rocky"
    UBUNTU = "ubuntu"
    VOID = "void"

    @property
    def info(self) -> DistroInfo:
        """Static registry entry for this distribution."""
        return DISTROS[self]

    @property
    def index_name(self) -> str:
        """Name used in the LXC Images index (e.g. 'rockylinux')."""
        return self.info.index_name

    @property
    def default_version(self) -> str:
        """Version used when the caller does not supply one."""
        return self.info.default_version

    def index_release(self, version: str) -> str:
        """Map a user-facing version to the index release name.

        Most distributions use the version as-is; some use codenames
        (e.g. Ubuntu '24.04' -> 'noble').
        """
        return dict(self.info.releases).get(version, version)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DistroInfo:
    """Static metadata for one distribution.

    Attributes:
        index_name: Distribution name in the unified index.
        default_version: Default version string.
        releases: Version -> index release name pairs.
    """

    index_name: str
    default_version: str
    releases: tuple[tuple[str, str], ...] = ()


DISTROS: dict[Distro, DistroInfo] = {
    Distro.ALMA: DistroInfo("almalinux", "9"),
    Distro.ALPINE: DistroInfo("alpine", "3.21"),
    Distro.ARCH: DistroInfo("archlinux", "current"),
    Distro.CENTOS: DistroInfo("centos", "9-Stream"),
    Distro.DEBIAN: DistroInfo(
        "debian",
        "12",
        (("10", "buster"), ("11", "bullseye"), ("12", "bookworm"), ("13", "trixie")),
    ),
    Distro.DEVUAN: DistroInfo(
        "devuan",
        "daedalus",
        (("4", "chimaera"), ("5", "daedalus"), ("6", "excalibur")),
    ),
    Distro.FEDORA: DistroInfo("fedora", "41"),
    Distro.GENTOO: DistroInfo("gentoo", "current"),
    Distro.KALI: DistroInfo("kali", "current"),
    Distro.NIXOS: DistroInfo("nixos", "25.05"),
    Distro.OPENEULER: DistroInfo("openeuler", "24.03"),
    Distro.OPENSUSE: DistroInfo("opensuse", "tumbleweed"),
    Distro.ORACLE: DistroInfo("oracle", "9"),
    Distro.ROCKY: DistroInfo("rockylinux", "9"),
    Distro.UBUNTU: DistroInfo(
        "ubuntu",
        "24.04",
        (
            ("20.04", "focal"),
            ("22.04", "jammy"),
            ("24.04", "noble"),
            ("24.10", "oracular"),
            ("25.04", "plucky"),
        ),
    ),
    Distro.VOID: DistroInfo("voidlinux", "current"),
}

# Alternative spellings accepted on the command line
DISTRO_ALIASES: dict[str, Distro] = {
    "almalinux": Distro.ALMA,
    "archlinux": Distro.ARCH,
    "rockylinux": Distro.ROCKY,
    "voidlinux": Distro.VOID,
}


def parse_distro(name: str) -> Distro:
    """Parse a distribution name or alias (case-insensitive).

    Raises:
        UnsupportedDistroError: If the name is not recognized.
    """
    key = name.strip().lower()
    if key in DISTRO_ALIASES:
        return DISTRO_ALIASES[key]
    try:
        return Distro(key)
    except ValueError:
        raise UnsupportedDistroError(name) from None


def parse_distro_spec(spec: str) -> tuple[Distro, str]:
    """Parse a distro spec string like 'alpine:3.20' or 'ubuntu'.

    If no version is specified, the distribution's default version is used.

    Args:
        spec: 'name' or 'name:version'.

    Returns:
        Tuple of (distro, version).

    Raises:
        UnsupportedDistroError: If the name is not recognized.
        UnsupportedVersionError: If the version part is empty.
    """
    name, sep, version = spec.partition(":")
    distro = parse_distro(name)

    if not sep:
        return distro, distro.default_version

    version = version.strip()
    if not version:
        raise UnsupportedVersionError(distro.value, version)
    return distro, version


def all_distros() -> list[Distro]:
    """Return all supported distributions."""
    return list(Distro)


__all__ = [
    "DISTROS",
    "DISTRO_ALIASES",
    "Distro",
    "DistroInfo",
    "all_distros",
    "parse_distro",
    "parse_distro_spec",
]
