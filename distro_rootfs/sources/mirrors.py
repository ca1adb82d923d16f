"""LXC Images mirror selection.

All mirrors serve the same Simplestreams index layout and image files; only
the base URL differs. A custom base URL (e.g. a self-hosted CDN) can be used
in place of a preset.
"""

from __future__ import annotations

from dataclasses import dataclass

# Path of the Simplestreams index relative to a mirror's base URL
STREAMS_INDEX_PATH = "streams/v1/images.json"

PRESET_MIRRORS: dict[str, str] = {
    "official": "https://images.linuxcontainers.org",
    "tuna": "https://mirrors.tuna.tsinghua.edu.cn/lxc-images",
    "ustc": "https://mirrors.ustc.edu.cn/lxc-images",
    "bfsu": "https://mirrors.bfsu.edu.cn/lxc-images",
}

DEFAULT_MIRROR = "official"


@dataclass(frozen=True)
class Mirror:
    """A unified image index mirror.

    Attributes:
        name: Preset name, or 'custom' for an arbitrary base URL.
        base_url: Base URL without trailing slash.
    """

    name: str
    base_url: str

    @classmethod
    def preset(cls, name: str) -> Mirror:
        """Return a preset mirror by name.

        Raises:
            ValueError: If the name is not a known preset.
        """
        key = name.strip().lower()
        if key not in PRESET_MIRRORS:
            valid = ", ".join(PRESET_MIRRORS)
            raise ValueError(f"Unknown mirror {name!r} (valid: {valid})")
        return cls(key, PRESET_MIRRORS[key])

    @classmethod
    def custom(cls, url: str) -> Mirror:
        """Return a mirror for an arbitrary base URL."""
        return cls("custom", url.rstrip("/"))

    @classmethod
    def parse(cls, value: str) -> Mirror:
        """Parse a preset name or an http(s) base URL.

        Raises:
            ValueError: If the value is neither.
        """
        if value.startswith(("http://", "https://")):
            return cls.custom(value)
        return cls.preset(value)

    @classmethod
    def default(cls) -> Mirror:
        """Return the official mirror."""
        return cls.preset(DEFAULT_MIRROR)

    @classmethod
    def presets(cls) -> list[Mirror]:
        """Return all preset mirrors."""
        return [cls(name, url) for name, url in PRESET_MIRRORS.items()]

    def streams_url(self) -> str:
        """URL of the Simplestreams images.json index."""
        return f"{self.base_url}/{STREAMS_INDEX_PATH}"

    def image_url(self, path: str) -> str:
        """Full download URL for an item path from the index."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def __str__(self) -> str:
        if self.name == "custom":
            return f"custom({self.base_url})"
        return self.name


__all__ = ["DEFAULT_MIRROR", "Mirror", "PRESET_MIRRORS", "STREAMS_INDEX_PATH"]
