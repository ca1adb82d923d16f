"""Official download sources described as static data.

Each supported distribution's official download rules are captured in an
immutable ``ResolutionSpec``; a single ``TemplateProvider`` interprets any
spec. Adding a distribution is a new ``ResolutionSpec`` entry, not new code.

URL templates support four placeholders:
- ``{version}``: the raw version string (e.g. '3.21.3')
- ``{arch}``: the architecture, rendered per ``arch_naming``
- ``{codename}``: looked up in ``codename_table``, falling back to
  ``default_codename``
- ``{major_minor}``: the version truncated per ``version_transform``

Substitution is literal string replacement, so placeholder text must not
appear elsewhere in a template.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from distro_rootfs.distros import Distro
from distro_rootfs.errors import UnsupportedDistroError, UnsupportedVersionError
from distro_rootfs.sources.checksums import parse_checksum
from distro_rootfs.types import (
    Arch,
    ArchNaming,
    ChecksumFormat,
    HashAlgorithm,
    ResolvedImage,
    VersionTransform,
)

logger = logging.getLogger(__name__)

PLACEHOLDERS = ("{version}", "{arch}", "{codename}", "{major_minor}")


@dataclass(frozen=True)
class ResolutionSpec:
    """Static description of a distribution's official rootfs download.

    Attributes:
        rootfs_url: URL template for the rootfs archive.
        checksum_url: URL template for the checksum file (optional).
        checksum_format: Grammar of the checksum file.
        hash_algorithm: Algorithm used in the checksum file.
        arch_naming: How architecture names appear in URLs.
        codename_table: Version -> codename pairs.
        default_codename: Codename used when the version is not in the table.
        version_transform: How to derive ``{major_minor}``.
    """

    rootfs_url: str
    checksum_url: str | None
    checksum_format: ChecksumFormat
    hash_algorithm: HashAlgorithm
    arch_naming: ArchNaming
    codename_table: tuple[tuple[str, str], ...] = ()
    default_codename: str = ""
    version_transform: VersionTransform = VersionTransform.IDENTITY


ALPINE = ResolutionSpec(
    rootfs_url=(
        "https://dl-cdn.alpinelinux.org/alpine/v{major_minor}/releases/{arch}/"
        "alpine-minirootfs-{version}-{arch}.tar.gz"
    ),
    checksum_url=(
        "https://dl-cdn.alpinelinux.org/alpine/v{major_minor}/releases/{arch}/"
        "alpine-minirootfs-{version}-{arch}.tar.gz.sha256"
    ),
    checksum_format=ChecksumFormat.SINGLE_ENTRY,
    hash_algorithm=HashAlgorithm.SHA256,
    arch_naming=ArchNaming.LINUX,
    version_transform=VersionTransform.MAJOR_MINOR,
)

UBUNTU = ResolutionSpec(
    rootfs_url=(
        "https://cloud-images.ubuntu.com/{codename}/current/"
        "{codename}-server-cloudimg-{arch}-root.tar.xz"
    ),
    checksum_url="https://cloud-images.ubuntu.com/{codename}/current/SHA256SUMS",
    checksum_format=ChecksumFormat.GNU,
    hash_algorithm=HashAlgorithm.SHA256,
    arch_naming=ArchNaming.DEBIAN,
    codename_table=(
        ("20.04", "focal"),
        ("22.04", "jammy"),
        ("24.04", "noble"),
        ("24.10", "oracular"),
        ("25.04", "plucky"),
    ),
    default_codename="noble",
)

DEBIAN = ResolutionSpec(
    rootfs_url=(
        "https://cloud.debian.org/images/cloud/{codename}/latest/"
        "debian-{version}-nocloud-{arch}.tar.xz"
    ),
    checksum_url="https://cloud.debian.org/images/cloud/{codename}/latest/SHA512SUMS",
    checksum_format=ChecksumFormat.GNU,
    hash_algorithm=HashAlgorithm.SHA512,
    arch_naming=ArchNaming.DEBIAN,
    codename_table=(
        ("10", "buster"),
        ("11", "bullseye"),
        ("12", "bookworm"),
        ("13", "trixie"),
    ),
    default_codename="bookworm",
)

FEDORA = ResolutionSpec(
    rootfs_url=(
        "https://download.fedoraproject.org/pub/fedora/linux/releases/{version}/"
        "Cloud/{arch}/images/Fedora-Cloud-Base-{version}-1.2.{arch}.raw.xz"
    ),
    checksum_url=(
        "https://download.fedoraproject.org/pub/fedora/linux/releases/{version}/"
        "Cloud/{arch}/images/Fedora-Cloud-{version}-1.2-{arch}-CHECKSUM"
    ),
    checksum_format=ChecksumFormat.BSD,
    hash_algorithm=HashAlgorithm.SHA256,
    arch_naming=ArchNaming.LINUX,
)

OFFICIAL_SPECS: dict[Distro, ResolutionSpec] = {
    Distro.ALPINE: ALPINE,
    Distro.UBUNTU: UBUNTU,
    Distro.DEBIAN: DEBIAN,
    Distro.FEDORA: FEDORA,
}


def major_minor(version: str) -> str:
    """Truncate a version after its second dot-separated segment.

    '3.21.3' -> '3.21'; versions with fewer than three segments are
    returned unchanged.
    """
    parts = version.split(".")
    if len(parts) < 3:
        return version
    return ".".join(parts[:2])


class TemplateProvider:
    """Resolves URLs and checksums for any ``ResolutionSpec``."""

    def __init__(self, spec: ResolutionSpec, distro: Distro | None = None) -> None:
        self.spec = spec
        self.distro = distro

    def _codename(self, version: str) -> str:
        return dict(self.spec.codename_table).get(version, self.spec.default_codename)

    def _major_minor(self, version: str) -> str:
        if self.spec.version_transform is VersionTransform.MAJOR_MINOR:
            return major_minor(version)
        return version

    def resolve_url(self, template: str, version: str, arch: Arch) -> str:
        """Substitute every placeholder in a URL template.

        Raises:
            UnsupportedVersionError: If a placeholder used by the template
                resolves to an empty string.
        """
        values = {
            "{version}": version,
            "{arch}": self.spec.arch_naming.resolve(arch),
            "{codename}": self._codename(version),
            "{major_minor}": self._major_minor(version),
        }

        url = template
        for placeholder, value in values.items():
            if placeholder not in url:
                continue
            if not value:
                distro = self.distro.value if self.distro else "template"
                raise UnsupportedVersionError(distro, version)
            url = url.replace(placeholder, value)
        return url

    def rootfs_url(self, version: str, arch: Arch) -> str:
        """Return the rootfs download URL for a version and architecture."""
        return self.resolve_url(self.spec.rootfs_url, version, arch)

    def checksum_url(self, version: str, arch: Arch) -> str | None:
        """Return the checksum file URL, if the spec defines one."""
        if self.spec.checksum_url is None:
            return None
        return self.resolve_url(self.spec.checksum_url, version, arch)

    def parse_checksum(self, content: str, filename: str) -> str:
        """Extract the hash for ``filename`` from checksum file content."""
        return parse_checksum(content, filename, self.spec.checksum_format)

    def hash_algorithm(self) -> HashAlgorithm:
        """Return the algorithm used by the checksum file."""
        return self.spec.hash_algorithm

    @staticmethod
    def filename_for(url: str) -> str:
        """Return the archive filename (last path segment) of a URL."""
        return url.rsplit("/", 1)[-1]


def get_official_provider(distro: Distro) -> TemplateProvider | None:
    """Return the official template provider for a distro, if one exists.

    Only Alpine, Ubuntu, Debian and Fedora have official templates;
    other distributions must be resolved through the unified index.
    """
    spec = OFFICIAL_SPECS.get(distro)
    if spec is None:
        return None
    return TemplateProvider(spec, distro)


def require_official_provider(distro: Distro) -> TemplateProvider:
    """Return the official provider for a distro.

    Raises:
        UnsupportedDistroError: If the distro has no official template.
    """
    provider = get_official_provider(distro)
    if provider is None:
        raise UnsupportedDistroError(
            distro.value,
            f"No official provider for {distro.value}; use the unified index",
        )
    return provider


def resolve_official(
    client: httpx.Client,
    distro: Distro,
    version: str,
    arch: Arch,
) -> ResolvedImage:
    """Resolve a rootfs from the distribution's official server.

    Fetches and parses the checksum file when the spec defines one.

    Args:
        client: HTTPX client instance.
        distro: Distribution.
        version: Version string.
        arch: Target architecture.

    Returns:
        ResolvedImage with the spec's hash algorithm. ``checksum`` is None
        when the distribution publishes no checksum file.

    Raises:
        UnsupportedDistroError: If the distro has no official template.
        UnsupportedVersionError: If the version cannot fill the templates.
        DownloadError: If the checksum file cannot be fetched.
        ChecksumParseError: If the checksum file has no entry for the archive.
    """
    from distro_rootfs.rootfs.fetch import fetch_text

    provider = require_official_provider(distro)
    url = provider.rootfs_url(version, arch)
    filename = provider.filename_for(url)

    checksum: str | None = None
    checksum_url = provider.checksum_url(version, arch)
    if checksum_url is not None:
        logger.info("Fetching checksum file %s", checksum_url)
        content = fetch_text(client, checksum_url)
        checksum = provider.parse_checksum(content, filename)
    else:
        logger.warning("No checksum file published for %s %s", distro.value, version)

    return ResolvedImage(
        url=url,
        checksum=checksum,
        filename=filename,
        algorithm=provider.hash_algorithm(),
        details={"checksum_url": checksum_url or ""},
    )


__all__ = [
    "ALPINE",
    "DEBIAN",
    "FEDORA",
    "OFFICIAL_SPECS",
    "PLACEHOLDERS",
    "UBUNTU",
    "ResolutionSpec",
    "TemplateProvider",
    "get_official_provider",
    "major_minor",
    "require_official_provider",
    "resolve_official",
]
