"""LXC Images (Simplestreams) unified index client.

This module handles:
- Fetching and validating the ``streams/v1/images.json`` index
- Product lookup by distro/release/arch with an ordered variant fallback
- Latest build selection
- Rootfs item extraction into a ``ResolvedImage``

The index maps product keys (``"{distro}:{release}:{arch}:{variant}"``) to
products; each product maps build timestamps to a set of downloadable items.
"""

from __future__ import annotations

import logging
import re

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from distro_rootfs.distros import Distro
from distro_rootfs.errors import (
    DownloadError,
    IndexFormatError,
    ProductNotFoundError,
    RootfsNotFoundError,
)
from distro_rootfs.sources.mirrors import Mirror
from distro_rootfs.types import Arch, BuildSerial, HashAlgorithm, ResolvedImage

logger = logging.getLogger(__name__)

# Variants tried in order; append here to accept more image flavors
VARIANT_PRIORITY: tuple[str, ...] = ("default", "cloud")

# Item type tag of the root filesystem archive
ROOTFS_FTYPE = "root.tar.xz"

# Conventional rootfs filename, used when no item carries ROOTFS_FTYPE
ROOTFS_FILENAME = "rootfs.tar.xz"

# Timeout for fetching the index (seconds)
INDEX_TIMEOUT = 30

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]+")


class Item(BaseModel):
    """A downloadable file within a product build."""

    model_config = ConfigDict(extra="ignore")

    ftype: str
    sha256: str
    size: int = 0
    path: str

    @field_validator("sha256")
    @classmethod
    def validate_sha256(cls, v: str) -> str:
        """Validate sha256 is a non-empty hex digest."""
        if not _HEX_DIGEST.fullmatch(v):
            raise ValueError(f"sha256 must be a hex digest, got '{v}'")
        return v


class ProductVersion(BaseModel):
    """A single dated build of a product."""

    model_config = ConfigDict(extra="ignore")

    items: dict[str, Item] = Field(default_factory=dict)


class Product(BaseModel):
    """A distro + release + arch + variant combination."""

    model_config = ConfigDict(extra="ignore")

    arch: str = ""
    os: str = ""
    release: str = ""
    release_title: str = ""
    variant: str = ""
    versions: dict[str, ProductVersion] = Field(default_factory=dict)


class SimplestreamsIndex(BaseModel):
    """Top-level ``images.json`` document."""

    model_config = ConfigDict(extra="ignore")

    products: dict[str, Product]


def product_key(index_distro: str, release: str, arch: str, variant: str) -> str:
    """Build a Simplestreams product key."""
    return f"{index_distro}:{release}:{arch}:{variant}"


def find_product(
    index: SimplestreamsIndex,
    distro: Distro,
    version: str,
    arch: Arch,
    variants: tuple[str, ...] = VARIANT_PRIORITY,
) -> tuple[str, Product]:
    """Find the first product matching distro/version/arch in variant order.

    Returns:
        Tuple of (product key, product).

    Raises:
        ProductNotFoundError: If no variant is present in the index.
    """
    release = distro.index_release(version)
    for variant in variants:
        key = product_key(distro.index_name, release, arch.index_name, variant)
        product = index.products.get(key)
        if product is not None:
            logger.debug("Found product %s", key)
            return key, product

    raise ProductNotFoundError(distro.value, version, arch.index_name)


def latest_build(product: Product, key: str) -> tuple[str, ProductVersion]:
    """Select the most recent build of a product.

    Raises:
        RootfsNotFoundError: If the product lists no builds.
    """
    if not product.versions:
        raise RootfsNotFoundError(key)
    serial = max(product.versions, key=BuildSerial.parse)
    return serial, product.versions[serial]


def find_rootfs_item(build: ProductVersion, key: str) -> Item:
    """Locate the rootfs archive within a build.

    Prefers an item typed ``root.tar.xz``; falls back to any item whose path
    ends with ``rootfs.tar.xz``.

    Raises:
        RootfsNotFoundError: If neither exists.
    """
    for item in build.items.values():
        if item.ftype == ROOTFS_FTYPE:
            return item
    for item in build.items.values():
        if item.path.endswith(ROOTFS_FILENAME):
            return item
    raise RootfsNotFoundError(key)


def parse_index(payload: bytes | str) -> SimplestreamsIndex:
    """Validate a raw index document.

    Raises:
        IndexFormatError: If the document is not a valid index.
    """
    try:
        return SimplestreamsIndex.model_validate_json(payload)
    except ValidationError as e:
        raise IndexFormatError(f"Invalid image index: {e.error_count()} error(s)") from e


class IndexClient:
    """Client for a Simplestreams unified image index."""

    def __init__(
        self,
        mirror: Mirror | None = None,
        client: httpx.Client | None = None,
        timeout: float = INDEX_TIMEOUT,
    ) -> None:
        """Initialize IndexClient.

        Args:
            mirror: Mirror to query (official mirror if not provided).
            client: HTTPX client (a private one is created if not provided).
            timeout: Index request timeout in seconds.
        """
        self.mirror = mirror or Mirror.default()
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.Client(follow_redirects=True)

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> IndexClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch_index(self) -> SimplestreamsIndex:
        """Fetch and validate the mirror's images.json.

        Raises:
            DownloadError: If the index cannot be fetched.
            IndexFormatError: If the document is malformed.
        """
        url = self.mirror.streams_url()
        logger.info("Fetching image index from %s (mirror: %s)", url, self.mirror)

        try:
            response = self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"HTTP error fetching image index: {e.response.status_code}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise DownloadError(
                f"Timeout fetching image index from {url}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise DownloadError(
                f"Network error fetching image index: {e}",
                code="network_error",
            ) from e

        index = parse_index(response.content)
        logger.debug("Image index loaded (%d products)", len(index.products))
        return index

    def resolve(self, distro: Distro, version: str, arch: Arch) -> ResolvedImage:
        """Resolve the download URL and checksum for a rootfs image."""
        return self.resolve_from_index(self.fetch_index(), distro, version, arch)

    def resolve_from_index(
        self,
        index: SimplestreamsIndex,
        distro: Distro,
        version: str,
        arch: Arch,
    ) -> ResolvedImage:
        """Resolve an image from a pre-fetched index.

        Raises:
            ProductNotFoundError: If no product variant matches.
            RootfsNotFoundError: If the product has no rootfs download.
        """
        key, product = find_product(index, distro, version, arch)
        serial, build = latest_build(product, key)
        item = find_rootfs_item(build, key)

        return ResolvedImage(
            url=self.mirror.image_url(item.path),
            checksum=item.sha256.lower(),
            filename=item.path.rsplit("/", 1)[-1] or ROOTFS_FILENAME,
            size=item.size,
            algorithm=HashAlgorithm.SHA256,
            details={"product_key": key, "build": serial},
        )


__all__ = [
    "INDEX_TIMEOUT",
    "IndexClient",
    "Item",
    "Product",
    "ProductVersion",
    "ROOTFS_FILENAME",
    "ROOTFS_FTYPE",
    "SimplestreamsIndex",
    "VARIANT_PRIORITY",
    "find_product",
    "find_rootfs_item",
    "latest_build",
    "parse_index",
    "product_key",
]
