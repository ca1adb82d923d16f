"""Entry point for ``python -m distro_rootfs``."""

from distro_rootfs.cli import app

app(prog_name="distro-rootfs")
