"""Checksum file parsing.

Three grammars are supported:
- single-entry: the first token of the first line is the hash
  (Alpine ``*.sha256`` files)
- GNU coreutils: ``<hash>  <filename>`` or ``<hash> *<filename>`` per line
  (Ubuntu ``SHA256SUMS``, Debian ``SHA512SUMS``)
- BSD: ``SHA256 (<filename>) = <hash>`` per line (Fedora ``CHECKSUM``)

Filename matching is always exact; a name that is merely a suffix of a
listed file never matches. Returned hashes are lowercase.
"""

from __future__ import annotations

import re

from distro_rootfs.errors import ChecksumParseError
from distro_rootfs.types import ChecksumFormat

# "<ALG> (<filename>) = <hash>"; the filename group is greedy so that names
# containing parentheses still end at the last ") ="
BSD_LINE_PATTERN = re.compile(
    r"^(?P<algorithm>[A-Za-z][A-Za-z0-9-]*)\s*\((?P<filename>.+)\)\s*=\s*(?P<hash>\S+)\s*$"
)


def parse_single_entry(content: str) -> str:
    """Return the first whitespace-delimited token of the first line.

    Args:
        content: Checksum file content.

    Returns:
        Lowercase hash string.

    Raises:
        ChecksumParseError: If the first line is empty.
    """
    lines = content.splitlines()
    tokens = lines[0].split() if lines else []
    if not tokens:
        raise ChecksumParseError()
    return tokens[0].lower()


def parse_gnu(content: str, filename: str) -> str:
    """Find a file's hash in a GNU coreutils style checksum list.

    Args:
        content: Checksum file content.
        filename: Exact filename to look up.

    Returns:
        Lowercase hash string.

    Raises:
        ChecksumParseError: If no line lists exactly ``filename``.
    """
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            continue

        checksum, name = parts
        # Binary mode indicator
        name = name.lstrip().lstrip("*")

        if name == filename:
            return checksum.lower()

    raise ChecksumParseError(filename)


def parse_bsd(content: str, filename: str) -> str:
    """Find a file's hash in a BSD style checksum list.

    Args:
        content: Checksum file content.
        filename: Exact filename to look up.

    Returns:
        Lowercase hash string.

    Raises:
        ChecksumParseError: If no line lists exactly ``filename``.
    """
    for line in content.splitlines():
        match = BSD_LINE_PATTERN.match(line.strip())
        if match is None:
            continue
        if match.group("filename") == filename:
            return match.group("hash").lower()

    raise ChecksumParseError(filename)


def parse_checksum(content: str, filename: str, fmt: ChecksumFormat) -> str:
    """Extract the expected hash for ``filename`` using the given grammar.

    Args:
        content: Checksum file content.
        filename: Filename to look up (ignored by the single-entry grammar).
        fmt: Checksum file grammar.

    Returns:
        Lowercase hash string.

    Raises:
        ChecksumParseError: If the hash cannot be found.
    """
    if fmt is ChecksumFormat.SINGLE_ENTRY:
        return parse_single_entry(content)
    if fmt is ChecksumFormat.GNU:
        return parse_gnu(content, filename)
    return parse_bsd(content, filename)


__all__ = [
    "BSD_LINE_PATTERN",
    "parse_bsd",
    "parse_checksum",
    "parse_gnu",
    "parse_single_entry",
]
