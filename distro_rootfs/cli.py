"""Thin CLI wrapper for distro_rootfs.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from distro_rootfs import __version__
from distro_rootfs.config import Settings, get_settings, print_settings_json
from distro_rootfs.distros import Distro, all_distros, parse_distro_spec
from distro_rootfs.errors import RootfsError
from distro_rootfs.rootfs.cache import CachedRootfs
from distro_rootfs.sources.mirrors import Mirror
from distro_rootfs.types import Arch, Source

app = typer.Typer(
    name="distro-rootfs",
    help="Distro Rootfs - resolve, download, verify and cache Linux root filesystems",
    no_args_is_help=True,
)
console = Console()

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

CacheDirOption = Annotated[
    Path | None,
    typer.Option("--cache-dir", help="Cache root (overrides DISTRO_ROOTFS_CACHE_DIR)"),
]
ArchOption = Annotated[
    str | None,
    typer.Option("--arch", "-a", help="Architecture (aarch64/arm64, x86_64/amd64)"),
]
MirrorOption = Annotated[
    str | None,
    typer.Option("--mirror", "-m", help="Mirror preset name or http(s) base URL"),
]
SourceOption = Annotated[
    str | None,
    typer.Option("--source", "-s", help="Resolve from 'index' or 'official'"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"distro-rootfs version {__version__}")
        raise typer.Exit()


def setup_logging(level: str) -> None:
    """Applies basic logging configuration."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Distro Rootfs - resolve, download, verify and cache Linux root filesystems."""
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print("[red]Invalid configuration:[/red]")
        console.print(str(e), markup=False)
        raise typer.Exit(code=1) from None
    setup_logging(settings.log_level)


def _print_json(data: object) -> None:
    console.print(json.dumps(data, indent=2), soft_wrap=True, markup=False, highlight=False)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]{escape(message)}[/red]")
    return typer.Exit(code=1)


def _settings(cache_dir: Path | None = None, offline: bool = False) -> Settings:
    settings = get_settings()
    update: dict[str, object] = {}
    if cache_dir is not None:
        update["cache_dir"] = cache_dir
    if offline:
        update["offline"] = True
    return settings.model_copy(update=update) if update else settings


def _parse_target(spec: str, arch: str | None) -> tuple[Distro, str, Arch]:
    distro, version = parse_distro_spec(spec)
    target_arch = Arch.parse(arch) if arch else Arch.current()
    return distro, version, target_arch


def _parse_source(source: str | None, settings: Settings) -> Source:
    if source is None:
        return settings.source
    try:
        return Source(source.lower())
    except ValueError:
        console.print(f"[red]Invalid source: {source}[/red]")
        console.print("Valid values: index, official")
        raise typer.Exit(code=1) from None


def _parse_mirror(mirror: str | None, settings: Settings) -> Mirror:
    try:
        return Mirror.parse(mirror) if mirror else settings.get_mirror()
    except ValueError as e:
        raise _fail(str(e)) from None


def _entry_output(entry: CachedRootfs) -> dict[str, object]:
    meta = entry.metadata
    return {
        "distro": meta.distro,
        "version": meta.version,
        "arch": meta.arch,
        "filename": meta.filename,
        "sha256": meta.sha256,
        "size": meta.size,
        "downloaded_at": meta.downloaded_at,
        "path": str(entry.archive_path),
    }


@app.command()
def config(json_output: JsonOption = False) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True, markup=False)
    else:
        lock_timeout_display = (
            str(settings.lock_timeout) if settings.lock_timeout is not None else "(blocking)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Cache directory:     {settings.cache_dir}")
        console.print()
        console.print("[bold]Sources:[/bold]")
        console.print(f"  Mirror:              {settings.mirror}")
        console.print(f"  Source:              {settings.source.value}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Offline mode:        {settings.offline}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Keep latest:         {settings.keep_latest}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Download timeout:    {settings.download_timeout}")
        console.print(f"  Index timeout:       {settings.index_timeout}")
        console.print(f"  Lock timeout:        {lock_timeout_display}")


@app.command()
def distros(json_output: JsonOption = False) -> None:
    """List supported distributions."""
    from distro_rootfs.sources.templates import get_official_provider

    rows = [
        {
            "distro": d.value,
            "index_name": d.index_name,
            "default_version": d.default_version,
            "official": get_official_provider(d) is not None,
        }
        for d in all_distros()
    ]

    if json_output:
        _print_json(rows)
        return

    console.print(f"[bold]Supported distributions ({len(rows)}):[/bold]")
    console.print()
    for row in rows:
        official = " [dim](official source)[/dim]" if row["official"] else ""
        console.print(
            f"  {row['distro']:<10} default {row['default_version']:<12} "
            f"index {row['index_name']}{official}"
        )


@app.command()
def mirrors(json_output: JsonOption = False) -> None:
    """List preset LXC Images mirrors."""
    presets = Mirror.presets()
    if json_output:
        _print_json([{"name": m.name, "base_url": m.base_url} for m in presets])
        return

    console.print("[bold]Preset mirrors:[/bold]")
    for m in presets:
        console.print(f"  {m.name:<10} {m.base_url}")


@app.command()
def resolve(
    spec: Annotated[str, typer.Argument(help="Distro spec, e.g. 'alpine' or 'ubuntu:22.04'")],
    arch: ArchOption = None,
    mirror: MirrorOption = None,
    source: SourceOption = None,
    json_output: JsonOption = False,
) -> None:
    """Resolve a rootfs download URL and checksum without downloading."""
    import httpx

    from distro_rootfs.sources.index import IndexClient
    from distro_rootfs.sources.templates import resolve_official

    settings = get_settings()
    try:
        distro, version, target_arch = _parse_target(spec, arch)
        resolved_source = _parse_source(source, settings)
        resolved_mirror = _parse_mirror(mirror, settings)

        with httpx.Client(follow_redirects=True) as client:
            if resolved_source is Source.OFFICIAL:
                image = resolve_official(client, distro, version, target_arch)
            else:
                index_client = IndexClient(
                    resolved_mirror, client=client, timeout=settings.index_timeout
                )
                image = index_client.resolve(distro, version, target_arch)
    except RootfsError as e:
        raise _fail(f"Failed to resolve {spec}: {e}") from None

    if json_output:
        _print_json(
            {
                "distro": distro.value,
                "version": version,
                "arch": target_arch.value,
                "source": resolved_source.value,
                "url": image.url,
                "filename": image.filename,
                "checksum": image.checksum,
                "algorithm": image.algorithm.value,
                "size": image.size,
                **image.details,
            }
        )
        return

    console.print(f"[bold]{distro.value} {version} ({target_arch.value})[/bold]")
    console.print(f"  URL: {image.url}", soft_wrap=True)
    console.print(f"  Checksum ({image.algorithm.value}): {image.checksum or '(none)'}")
    if image.size:
        console.print(f"  Size: {image.size} bytes")
    for key, value in image.details.items():
        if value:
            console.print(f"  {key}: {value}")


@app.command()
def ensure(
    spec: Annotated[str, typer.Argument(help="Distro spec, e.g. 'alpine' or 'ubuntu:22.04'")],
    arch: ArchOption = None,
    mirror: MirrorOption = None,
    source: SourceOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Force re-download even if cached"),
    ] = False,
    offline: Annotated[
        bool,
        typer.Option("--offline", help="Only use the cache; never download"),
    ] = False,
    cache_dir: CacheDirOption = None,
    json_output: JsonOption = False,
) -> None:
    """Ensure a verified rootfs is available in the cache."""
    from distro_rootfs.rootfs.service import RootfsManager

    settings = _settings(cache_dir, offline)
    manager = RootfsManager(settings=settings)

    try:
        distro, version, target_arch = _parse_target(spec, arch)
        resolved_source = _parse_source(source, settings)
        resolved_mirror = _parse_mirror(mirror, settings)

        if json_output:
            entry = manager.ensure(
                distro,
                version,
                target_arch,
                mirror=resolved_mirror,
                source=resolved_source,
                force=force,
            )
        else:
            console.print(
                f"[blue]Ensuring rootfs {distro.value} {version} ({target_arch.value})...[/blue]"
            )
            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Downloading", total=None)

                def on_progress(downloaded: int, total: int) -> None:
                    progress.update(task, completed=downloaded, total=total or None)

                entry = manager.ensure(
                    distro,
                    version,
                    target_arch,
                    mirror=resolved_mirror,
                    on_progress=on_progress,
                    source=resolved_source,
                    force=force,
                )
    except RootfsError as e:
        raise _fail(f"Failed to ensure rootfs {spec}: {e}") from None
    except TimeoutError as e:
        raise _fail(str(e)) from None

    if json_output:
        _print_json(_entry_output(entry))
    else:
        console.print(
            f"[green]✓ Rootfs ready: {distro.value} {version} ({target_arch.value})[/green]"
        )
        console.print(f"  Path: {entry.archive_path}", soft_wrap=True)
        console.print(f"  SHA256: {entry.metadata.sha256[:16]}...")


@app.command("list")
def list_cmd(
    cache_dir: CacheDirOption = None,
    json_output: JsonOption = False,
) -> None:
    """List cached rootfs archives."""
    from distro_rootfs.rootfs.service import RootfsManager

    manager = RootfsManager(settings=_settings(cache_dir))
    try:
        entries = manager.list_cached()
    except RootfsError as e:
        raise _fail(f"Failed to list cache: {e}") from None

    if not entries:
        if json_output:
            console.print("[]", markup=False)
        else:
            console.print("[yellow]No cached rootfs archives found[/yellow]")
        return

    if json_output:
        _print_json([_entry_output(e) for e in entries])
        return

    console.print(f"[bold]Found {len(entries)} cached rootfs archive(s):[/bold]")
    console.print()
    for e in entries:
        meta = e.metadata
        console.print(f"  [green]{meta.distro} {meta.version} ({meta.arch})[/green]")
        console.print(f"    File: {meta.filename} ({meta.size} bytes)")
        console.print(f"    SHA256: {meta.sha256[:16]}...")
        console.print()


@app.command()
def prune(
    keep: Annotated[
        int | None,
        typer.Option("--keep", "-k", min=0, help="Entries to keep per distro"),
    ] = None,
    cache_dir: CacheDirOption = None,
    json_output: JsonOption = False,
) -> None:
    """Remove all but the newest cache entries of each distro."""
    from distro_rootfs.rootfs.service import RootfsManager, format_size

    manager = RootfsManager(settings=_settings(cache_dir))
    keep_latest = manager.settings.keep_latest if keep is None else keep

    try:
        freed = manager.prune(keep_latest)
    except RootfsError as e:
        raise _fail(f"Failed to prune cache: {e}") from None

    if json_output:
        _print_json({"keep_latest": keep_latest, "freed_bytes": freed})
    elif freed:
        console.print(f"[bold]Pruned cache, freed {format_size(freed)}[/bold]")
    else:
        console.print("[yellow]Nothing to prune[/yellow]")


@app.command()
def extract(
    spec: Annotated[str, typer.Argument(help="Distro spec, e.g. 'alpine' or 'ubuntu:22.04'")],
    dest: Annotated[Path, typer.Argument(help="Directory to extract into")],
    arch: ArchOption = None,
    offline: Annotated[
        bool,
        typer.Option("--offline", help="Only use the cache; never download"),
    ] = False,
    cache_dir: CacheDirOption = None,
) -> None:
    """Extract a rootfs into a directory, downloading it first if needed."""
    from distro_rootfs.rootfs.service import RootfsManager

    manager = RootfsManager(settings=_settings(cache_dir, offline))

    try:
        distro, version, target_arch = _parse_target(spec, arch)
        entry = manager.ensure(distro, version, target_arch)
        entry.extract_to(dest)
    except RootfsError as e:
        raise _fail(f"Failed to extract {spec}: {e}") from None
    except TimeoutError as e:
        raise _fail(str(e)) from None

    console.print(f"[green]✓ Extracted {distro.value} {version} to {dest}[/green]")


@app.command()
def info(
    cache_dir: CacheDirOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show rootfs cache information."""
    from distro_rootfs.rootfs.service import RootfsManager

    manager = RootfsManager(settings=_settings(cache_dir))
    try:
        cache_info = manager.cache_info()
    except RootfsError as e:
        raise _fail(f"Failed to read cache: {e}") from None

    if json_output:
        _print_json(cache_info)
    else:
        console.print("[bold]Rootfs Cache Information:[/bold]")
        console.print()
        console.print(f"  Cache directory: {cache_info['cache_dir']}")
        console.print(f"  Exists: {cache_info['exists']}")
        console.print(f"  Entries: {cache_info['entries']}")
        console.print(f"  Total size: {cache_info['total_size_human']}")


if __name__ == "__main__":
    app()
