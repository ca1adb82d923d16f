"""Rootfs archive extraction.

Supports gzip- and xz-compressed tarballs. Rootfs archives legitimately
contain absolute symlinks, device nodes and setuid files, so extraction uses
tarfile's ``tar`` filter rather than ``data``; member names themselves are
still checked for path traversal.
"""

from __future__ import annotations

import logging
import tarfile
from enum import Enum
from pathlib import Path

from distro_rootfs.errors import ExtractionError, UnsupportedArchiveFormatError

logger = logging.getLogger(__name__)


class ExtractFormat(str, Enum):
    """Supported rootfs archive formats."""

    TAR_GZ = "tar.gz"
    TAR_XZ = "tar.xz"

    @property
    def mode(self) -> str:
        """tarfile open mode for this format."""
        return "r:gz" if self is ExtractFormat.TAR_GZ else "r:xz"

    @classmethod
    def detect(cls, path: Path | str) -> ExtractFormat:
        """Detect the archive format from a filename.

        Raises:
            UnsupportedArchiveFormatError: If the extension is not recognized.
        """
        name = Path(path).name.lower()
        if name.endswith((".tar.gz", ".tgz")):
            return cls.TAR_GZ
        if name.endswith((".tar.xz", ".txz")):
            return cls.TAR_XZ
        raise UnsupportedArchiveFormatError(Path(path).name)


def _check_members(archive_path: Path, members: list[tarfile.TarInfo]) -> None:
    for member in members:
        member_path = Path(member.name)
        if member_path.is_absolute() or ".." in member_path.parts:
            raise ExtractionError(
                f"Refusing to extract {member.name} from {archive_path.name}: "
                "path traversal detected",
                code="path_traversal",
            )


def extract_archive(
    archive_path: Path,
    dest_dir: Path,
    fmt: ExtractFormat | None = None,
) -> Path:
    """Extract a rootfs archive into a directory.

    Args:
        archive_path: Path to the archive file.
        dest_dir: Destination directory (created if missing).
        fmt: Archive format (detected from the filename if not provided).

    Returns:
        The destination directory.

    Raises:
        UnsupportedArchiveFormatError: If the format cannot be detected.
            Raised before ``dest_dir`` is created.
        ExtractionError: If extraction fails.
    """
    if fmt is None:
        fmt = ExtractFormat.detect(archive_path)

    logger.info("Extracting %s to %s", archive_path.name, dest_dir)

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)

        with tarfile.open(archive_path, fmt.mode) as tar:
            members = tar.getmembers()
            _check_members(archive_path, members)
            tar.extractall(dest_dir, members=members, filter="tar")

    except tarfile.TarError as e:
        raise ExtractionError(
            f"Failed to extract {archive_path}: {e}",
            code="tar_error",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error extracting {archive_path}: {e}",
            code="os_error",
        ) from e

    logger.info("Extracted %d entries to %s", len(members), dest_dir)
    return dest_dir


__all__ = ["ExtractFormat", "extract_archive"]
