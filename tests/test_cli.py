"""Tests for the CLI.

These tests verify CLI behaviour with mocked HTTP responses and a
temporary cache directory, without network access.
"""

import hashlib
import json
import subprocess
import sys

import httpx
import pytest
import respx
from typer.testing import CliRunner

from distro_rootfs import __version__
from distro_rootfs.cli import app

runner = CliRunner()

INDEX_URL = "https://images.linuxcontainers.org/streams/v1/images.json"
ROOTFS_PATH = "images/alpine/3.21/amd64/default/20260218_13:00/rootfs.tar.xz"
CONTENT = b"alpine rootfs archive"


def make_index() -> dict:
    """Build an images.json with a single alpine product."""
    return {
        "products": {
            "alpine:3.21:amd64:default": {
                "versions": {
                    "20260218_13:00": {
                        "items": {
                            "root.tar.xz": {
                                "ftype": "root.tar.xz",
                                "sha256": hashlib.sha256(CONTENT).hexdigest(),
                                "size": len(CONTENT),
                                "path": ROOTFS_PATH,
                            }
                        }
                    }
                }
            }
        }
    }


def mock_routes() -> None:
    respx.get(INDEX_URL).mock(return_value=httpx.Response(200, json=make_index()))
    respx.get(f"https://images.linuxcontainers.org/{ROOTFS_PATH}").mock(
        return_value=httpx.Response(200, content=CONTENT)
    )


@pytest.fixture
def cache_env(tmp_path, monkeypatch):
    """Point the CLI at a temporary cache directory."""
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("DISTRO_ROOTFS_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("DISTRO_ROOTFS_OFFLINE", raising=False)
    return cache_dir


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Distro Rootfs" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Cache directory" in result.stdout
        assert "Paths:" in result.stdout
        assert "Sources:" in result.stdout
        assert "Timeouts (seconds):" in result.stdout

    @pytest.mark.parametrize(
        ("name", "value"),
        [("DISTRO_ROOTFS_MIRROR", "nowhere"), ("DISTRO_ROOTFS_SOURCE", "torrent")],
    )
    def test_invalid_env_config(self, monkeypatch, name, value) -> None:
        """Bad environment settings should exit cleanly, not with a traceback."""
        monkeypatch.setenv(name, value)
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout
        assert isinstance(result.exception, SystemExit)

    def test_config_json(self) -> None:
        """CLI config --json should output JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert "cache_dir" in parsed
        assert parsed["source"] in ("index", "official")


class TestCLIDistrosAndMirrors:
    """Test registry listing commands."""

    def test_distros_json(self) -> None:
        result = runner.invoke(app, ["distros", "--json"])
        assert result.exit_code == 0
        rows = json.loads(result.stdout)
        assert len(rows) == 16
        alpine = next(r for r in rows if r["distro"] == "alpine")
        assert alpine["official"] is True
        assert alpine["default_version"] == "3.21"

    def test_distros_text(self) -> None:
        result = runner.invoke(app, ["distros"])
        assert result.exit_code == 0
        assert "rockylinux" in result.stdout

    def test_mirrors_json(self) -> None:
        result = runner.invoke(app, ["mirrors", "--json"])
        assert result.exit_code == 0
        names = [m["name"] for m in json.loads(result.stdout)]
        assert names[0] == "official"
        assert "tuna" in names


class TestCLIResolve:
    """Test CLI resolve command."""

    @respx.mock
    def test_resolve_json(self) -> None:
        mock_routes()
        result = runner.invoke(app, ["resolve", "alpine:3.21", "--arch", "amd64", "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["arch"] == "x86_64"
        assert parsed["url"].endswith("rootfs.tar.xz")
        assert parsed["checksum"] == hashlib.sha256(CONTENT).hexdigest()
        assert parsed["product_key"] == "alpine:3.21:amd64:default"

    @respx.mock
    def test_resolve_product_not_found(self) -> None:
        mock_routes()
        result = runner.invoke(app, ["resolve", "alpine:3.21", "--arch", "arm64"])
        assert result.exit_code == 1
        assert "Product not found" in result.stdout

    def test_unknown_distro(self) -> None:
        result = runner.invoke(app, ["resolve", "slackware", "--arch", "x86_64"])
        assert result.exit_code == 1
        assert "Unsupported distribution" in result.stdout

    def test_unknown_arch(self) -> None:
        result = runner.invoke(app, ["resolve", "alpine", "--arch", "mips"])
        assert result.exit_code == 1
        assert "Unsupported architecture" in result.stdout

    def test_invalid_source(self) -> None:
        result = runner.invoke(app, ["resolve", "alpine", "--arch", "x86_64", "--source", "ftp"])
        assert result.exit_code == 1
        assert "Invalid source" in result.stdout

    def test_invalid_mirror(self) -> None:
        result = runner.invoke(
            app, ["resolve", "alpine", "--arch", "x86_64", "--mirror", "nowhere"]
        )
        assert result.exit_code == 1
        assert "Unknown mirror" in result.stdout


class TestCLICache:
    """Test CLI ensure, list, info, prune and extract commands."""

    @respx.mock
    def test_ensure_json(self, cache_env) -> None:
        mock_routes()
        result = runner.invoke(app, ["ensure", "alpine", "--arch", "x86_64", "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["distro"] == "alpine"
        assert parsed["version"] == "3.21"
        assert parsed["size"] == len(CONTENT)
        assert (cache_env / "alpine" / "3.21" / "x86_64" / "rootfs.tar.xz").exists()

    @respx.mock
    def test_ensure_text(self, cache_env) -> None:
        mock_routes()
        result = runner.invoke(app, ["ensure", "alpine", "--arch", "x86_64"])

        assert result.exit_code == 0
        assert "Rootfs ready" in result.stdout

    def test_ensure_offline_miss(self, cache_env) -> None:
        result = runner.invoke(app, ["ensure", "alpine", "--arch", "x86_64", "--offline"])
        assert result.exit_code == 1
        assert "offline" in result.stdout

    @respx.mock
    def test_list_info_prune(self, cache_env) -> None:
        mock_routes()
        runner.invoke(app, ["ensure", "alpine", "--arch", "x86_64", "--json"])

        listed = runner.invoke(app, ["list", "--json"])
        assert listed.exit_code == 0
        entries = json.loads(listed.stdout)
        assert [(e["distro"], e["arch"]) for e in entries] == [("alpine", "x86_64")]

        info = runner.invoke(app, ["info", "--json"])
        assert info.exit_code == 0
        assert json.loads(info.stdout)["entries"] == 1

        pruned = runner.invoke(app, ["prune", "--keep", "0", "--json"])
        assert pruned.exit_code == 0
        assert json.loads(pruned.stdout) == {"keep_latest": 0, "freed_bytes": len(CONTENT)}

        empty = runner.invoke(app, ["list", "--json"])
        assert json.loads(empty.stdout) == []

    def test_list_empty_text(self, cache_env) -> None:
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "No cached rootfs archives found" in result.stdout

    def test_cache_dir_option(self, tmp_path) -> None:
        result = runner.invoke(app, ["info", "--cache-dir", str(tmp_path / "other"), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["cache_dir"] == str(tmp_path / "other")

    def test_extract_from_cache(self, cache_env, tmp_path) -> None:
        import io
        import tarfile

        from distro_rootfs.rootfs.cache import store
        from distro_rootfs.rootfs.fetch import DownloadResult

        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:xz") as tar:
            info = tarfile.TarInfo(name="etc/os-release")
            info.size = 10
            tar.addfile(info, io.BytesIO(b"ID=alpine\n"))
        store(
            cache_env / "alpine" / "3.21" / "x86_64",
            DownloadResult.from_bytes(buf.getvalue(), "rootfs.tar.xz"),
        )

        dest = tmp_path / "rootfs"
        result = runner.invoke(
            app, ["extract", "alpine", str(dest), "--arch", "x86_64", "--offline"]
        )

        assert result.exit_code == 0
        assert (dest / "etc" / "os-release").read_bytes() == b"ID=alpine\n"


class TestModuleEntryPoint:
    """Test python -m distro_rootfs."""

    def test_module_version(self) -> None:
        result = subprocess.run(
            [sys.executable, "-m", "distro_rootfs", "--version"],
            capture_output=True,
            text=True,
            check=False,
        )
        assert result.returncode == 0
        assert __version__ in result.stdout
