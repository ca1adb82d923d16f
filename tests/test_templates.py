"""Tests for official template resolution.

These tests use mocked HTTP responses for checksum files.
"""

import httpx
import pytest
import respx

from distro_rootfs.distros import Distro
from distro_rootfs.errors import (
    ChecksumParseError,
    DownloadError,
    UnsupportedDistroError,
    UnsupportedVersionError,
)
from distro_rootfs.sources.templates import (
    ResolutionSpec,
    TemplateProvider,
    get_official_provider,
    major_minor,
    require_official_provider,
    resolve_official,
)
from distro_rootfs.types import (
    Arch,
    ArchNaming,
    ChecksumFormat,
    HashAlgorithm,
    VersionTransform,
)


class TestMajorMinor:
    """Tests for major_minor truncation."""

    def test_three_segments(self):
        assert major_minor("3.21.3") == "3.21"

    def test_four_segments(self):
        assert major_minor("3.21.3.1") == "3.21"

    def test_two_segments_unchanged(self):
        assert major_minor("3.21") == "3.21"

    def test_single_segment_unchanged(self):
        assert major_minor("41") == "41"


class TestGetOfficialProvider:
    """Tests for provider lookup."""

    @pytest.mark.parametrize("distro", [Distro.ALPINE, Distro.UBUNTU, Distro.DEBIAN, Distro.FEDORA])
    def test_official_distros(self, distro):
        assert get_official_provider(distro) is not None

    @pytest.mark.parametrize("distro", [Distro.ARCH, Distro.ROCKY, Distro.VOID, Distro.NIXOS])
    def test_other_distros(self, distro):
        assert get_official_provider(distro) is None

    def test_require_raises(self):
        with pytest.raises(UnsupportedDistroError):
            require_official_provider(Distro.GENTOO)


class TestAlpineUrls:
    """Tests for Alpine URL resolution."""

    def test_rootfs_url(self):
        provider = require_official_provider(Distro.ALPINE)
        url = provider.rootfs_url("3.21.3", Arch.X86_64)
        assert url == (
            "https://dl-cdn.alpinelinux.org/alpine/v3.21/releases/x86_64/"
            "alpine-minirootfs-3.21.3-x86_64.tar.gz"
        )

    def test_checksum_url(self):
        provider = require_official_provider(Distro.ALPINE)
        url = provider.checksum_url("3.21.3", Arch.AARCH64)
        assert url == (
            "https://dl-cdn.alpinelinux.org/alpine/v3.21/releases/aarch64/"
            "alpine-minirootfs-3.21.3-aarch64.tar.gz.sha256"
        )

    def test_hash_algorithm(self):
        assert require_official_provider(Distro.ALPINE).hash_algorithm() is HashAlgorithm.SHA256


class TestUbuntuUrls:
    """Tests for Ubuntu URL resolution."""

    def test_codename_from_table(self):
        provider = require_official_provider(Distro.UBUNTU)
        url = provider.rootfs_url("22.04", Arch.AARCH64)
        assert url == (
            "https://cloud-images.ubuntu.com/jammy/current/"
            "jammy-server-cloudimg-arm64-root.tar.xz"
        )

    def test_default_codename(self):
        """Unknown versions should fall back to the default codename."""
        provider = require_official_provider(Distro.UBUNTU)
        url = provider.checksum_url("99.04", Arch.X86_64)
        assert url == "https://cloud-images.ubuntu.com/noble/current/SHA256SUMS"


class TestDebianAndFedoraUrls:
    """Tests for Debian and Fedora URL resolution."""

    def test_debian(self):
        provider = require_official_provider(Distro.DEBIAN)
        assert provider.rootfs_url("12", Arch.X86_64) == (
            "https://cloud.debian.org/images/cloud/bookworm/latest/"
            "debian-12-nocloud-amd64.tar.xz"
        )
        assert provider.hash_algorithm() is HashAlgorithm.SHA512

    def test_fedora(self):
        provider = require_official_provider(Distro.FEDORA)
        assert provider.rootfs_url("41", Arch.AARCH64) == (
            "https://download.fedoraproject.org/pub/fedora/linux/releases/41/"
            "Cloud/aarch64/images/Fedora-Cloud-Base-41-1.2.aarch64.raw.xz"
        )


class TestTemplateProvider:
    """Tests for generic template interpretation."""

    def test_no_checksum_url(self):
        spec = ResolutionSpec(
            rootfs_url="https://example.com/{version}/{arch}.tar.gz",
            checksum_url=None,
            checksum_format=ChecksumFormat.GNU,
            hash_algorithm=HashAlgorithm.SHA256,
            arch_naming=ArchNaming.DEBIAN,
        )
        provider = TemplateProvider(spec)
        assert provider.rootfs_url("1.0", Arch.X86_64) == "https://example.com/1.0/amd64.tar.gz"
        assert provider.checksum_url("1.0", Arch.X86_64) is None

    def test_empty_placeholder_raises(self):
        """A placeholder resolving to an empty string should be rejected."""
        spec = ResolutionSpec(
            rootfs_url="https://example.com/{codename}/rootfs.tar.gz",
            checksum_url=None,
            checksum_format=ChecksumFormat.GNU,
            hash_algorithm=HashAlgorithm.SHA256,
            arch_naming=ArchNaming.LINUX,
            version_transform=VersionTransform.IDENTITY,
        )
        with pytest.raises(UnsupportedVersionError):
            TemplateProvider(spec).rootfs_url("1.0", Arch.X86_64)

    def test_empty_version_raises(self):
        provider = require_official_provider(Distro.ALPINE)
        with pytest.raises(UnsupportedVersionError):
            provider.rootfs_url("", Arch.X86_64)

    def test_filename_for(self):
        assert TemplateProvider.filename_for("https://a/b/c.tar.xz") == "c.tar.xz"


class TestResolveOfficial:
    """Tests for resolve_official."""

    @respx.mock
    def test_alpine(self):
        """Should fetch the .sha256 file and parse its single entry."""
        respx.get(
            "https://dl-cdn.alpinelinux.org/alpine/v3.21/releases/x86_64/"
            "alpine-minirootfs-3.21.3-x86_64.tar.gz.sha256"
        ).mock(
            return_value=httpx.Response(
                200, text="ABC123  alpine-minirootfs-3.21.3-x86_64.tar.gz\n"
            )
        )

        with httpx.Client() as client:
            image = resolve_official(client, Distro.ALPINE, "3.21.3", Arch.X86_64)

        assert image.checksum == "abc123"
        assert image.filename == "alpine-minirootfs-3.21.3-x86_64.tar.gz"
        assert image.algorithm is HashAlgorithm.SHA256
        assert image.size == 0

    @respx.mock
    def test_debian_sha512(self):
        respx.get("https://cloud.debian.org/images/cloud/bookworm/latest/SHA512SUMS").mock(
            return_value=httpx.Response(
                200,
                text="111  debian-12-nocloud-arm64.tar.xz\n222  debian-12-nocloud-amd64.tar.xz\n",
            )
        )

        with httpx.Client() as client:
            image = resolve_official(client, Distro.DEBIAN, "12", Arch.X86_64)

        assert image.checksum == "222"
        assert image.algorithm is HashAlgorithm.SHA512

    @respx.mock
    def test_missing_entry(self):
        respx.get("https://cloud-images.ubuntu.com/noble/current/SHA256SUMS").mock(
            return_value=httpx.Response(200, text="111  something-else.img\n")
        )

        with httpx.Client() as client, pytest.raises(ChecksumParseError):
            resolve_official(client, Distro.UBUNTU, "24.04", Arch.X86_64)

    @respx.mock
    def test_checksum_http_error(self):
        respx.get("https://cloud-images.ubuntu.com/noble/current/SHA256SUMS").mock(
            return_value=httpx.Response(404)
        )

        with httpx.Client() as client, pytest.raises(DownloadError) as exc_info:
            resolve_official(client, Distro.UBUNTU, "24.04", Arch.X86_64)
        assert exc_info.value.code == "http_error"

    def test_unsupported_distro(self):
        with httpx.Client() as client, pytest.raises(UnsupportedDistroError):
            resolve_official(client, Distro.ARCH, "current", Arch.X86_64)
