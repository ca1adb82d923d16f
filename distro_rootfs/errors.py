"""Error types for distro_rootfs.

Every error carries a stable ``code`` for structured error handling, so the
CLI (and any other frontend) can react to the condition without parsing
messages. Errors live here rather than beside the code that raises them to
avoid circular imports between the resolution and cache subpackages.
"""

from __future__ import annotations


class RootfsError(Exception):
    """Base class for all distro_rootfs errors."""

    def __init__(self, message: str, code: str = "rootfs_error") -> None:
        """Initialize RootfsError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class UnsupportedDistroError(RootfsError):
    """Raised when a distribution name is not recognized or has no provider."""

    def __init__(self, distro: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Unsupported distribution: {distro}",
            code="unsupported_distro",
        )
        self.distro = distro


class UnsupportedVersionError(RootfsError):
    """Raised when a version cannot be used for the given distribution."""

    def __init__(self, distro: str, version: str) -> None:
        super().__init__(
            f"Unsupported version {version!r} for {distro}",
            code="unsupported_version",
        )
        self.distro = distro
        self.version = version


class UnsupportedArchError(RootfsError):
    """Raised when an architecture name is not recognized."""

    def __init__(self, arch: str) -> None:
        super().__init__(f"Unsupported architecture: {arch}", code="unsupported_arch")
        self.arch = arch


class DownloadError(RootfsError):
    """Raised when an HTTP transfer fails."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        super().__init__(message, code=code)


class ChecksumMismatchError(RootfsError):
    """Raised when downloaded data does not match the expected checksum."""

    def __init__(self, expected: str, actual: str, url: str | None = None) -> None:
        """Initialize ChecksumMismatchError.

        Args:
            expected: Hash from the checksum file or index.
            actual: Hash computed from the downloaded data.
            url: Source URL, if known.
        """
        source = f" for {url}" if url else ""
        super().__init__(
            f"Checksum mismatch{source}: expected {expected}, got {actual}",
            code="checksum_mismatch",
        )
        self.expected = expected
        self.actual = actual
        self.url = url


class ChecksumParseError(RootfsError):
    """Raised when a checksum file has no entry for the requested file."""

    def __init__(self, filename: str | None = None) -> None:
        target = f" for {filename}" if filename else ""
        super().__init__(f"Failed to parse checksum file{target}", code="checksum_parse")
        self.filename = filename


class ProductNotFoundError(RootfsError):
    """Raised when no index product matches distro/version/arch."""

    def __init__(self, distro: str, version: str, arch: str) -> None:
        super().__init__(
            f"Product not found: {distro} {version} ({arch})",
            code="product_not_found",
        )
        self.distro = distro
        self.version = version
        self.arch = arch


class RootfsNotFoundError(RootfsError):
    """Raised when an index product has no rootfs download."""

    def __init__(self, product_key: str) -> None:
        super().__init__(
            f"Rootfs not found in product: {product_key}",
            code="rootfs_not_found",
        )
        self.product_key = product_key


class IndexFormatError(RootfsError):
    """Raised when the unified image index cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_index")


class MetadataError(RootfsError):
    """Raised when a cache entry's metadata.json cannot be decoded."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Invalid cache metadata {path}: {reason}", code="metadata_error")
        self.path = path


class UnsupportedArchiveFormatError(RootfsError):
    """Raised when an archive has an unrecognized file extension."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            f"Unsupported archive format: {filename}",
            code="unsupported_format",
        )
        self.filename = filename


class ExtractionError(RootfsError):
    """Raised when archive extraction fails."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        super().__init__(message, code=code)


class OfflineModeError(RootfsError):
    """Raised when a download is required but offline mode is enabled."""

    def __init__(self, message: str = "Cannot download in offline mode") -> None:
        super().__init__(message, code="offline_mode")


__all__ = [
    "ChecksumMismatchError",
    "ChecksumParseError",
    "DownloadError",
    "ExtractionError",
    "IndexFormatError",
    "MetadataError",
    "OfflineModeError",
    "ProductNotFoundError",
    "RootfsError",
    "RootfsNotFoundError",
    "UnsupportedArchError",
    "UnsupportedArchiveFormatError",
    "UnsupportedDistroError",
    "UnsupportedVersionError",
]
