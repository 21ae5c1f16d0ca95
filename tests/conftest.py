"""
Pytest configuration and shared fixtures for hoverkit tests.
"""

import io
import subprocess
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from hoverkit.core.download import DownloadError


def build_zip(entries, modes=None) -> bytes:
    """
    Build an in-memory zip archive.

    Args:
        entries: Mapping of archive member name to content, None for a
            directory entry
        modes: Optional mapping of member name to permission bits

    Returns:
        The archive bytes
    """
    modes = modes or {}
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            info = zipfile.ZipInfo(name)
            if content is None:
                if not info.filename.endswith("/"):
                    info = zipfile.ZipInfo(name + "/")
                info.external_attr = (0o40755 << 16) | 0x10
                zf.writestr(info, b"")
                continue
            if name in modes:
                info.external_attr = (0o100000 | modes[name]) << 16
            zf.writestr(info, content)
    return buffer.getvalue()


@pytest.fixture
def make_zip(tmp_path):
    """Write a zip archive to disk, see build_zip for the arguments."""

    def _make_zip(name, entries, modes=None) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_zip(entries, modes))
        return path

    return _make_zip


@pytest.fixture
def zip_bytes():
    """Expose build_zip to tests."""
    return build_zip


class FakeFetcher:
    """
    Stand-in for hoverkit.core.download.fetch serving archives by file name.

    Archives are looked up by the last component of the requested URL. A
    name listed in fail_on raises DownloadError like a failed transfer.
    """

    def __init__(self, archives, fail_on=()):
        self.archives = dict(archives)
        self.fail_on = set(fail_on)
        self.calls = []

    def __call__(self, url, destination, progress_callback=None):
        self.calls.append(url)
        name = url.rsplit("/", 1)[-1]
        if name in self.fail_on or name not in self.archives:
            raise DownloadError(f"Failed to download {url}: 404 Client Error")
        Path(destination).write_bytes(self.archives[name])
        return Path(destination)


def _linux_archives():
    return {
        "artifacts.zip": build_zip(
            {
                "icudtl.dat": b"icu",
                "frontend_server.dart.snapshot": b"frontend",
            }
        ),
        "dart-sdk-linux-x64.zip": build_zip(
            {"dart-sdk/bin/dart": b"#!dart"}, modes={"dart-sdk/bin/dart": 0o755}
        ),
        "flutter_patched_sdk_product.zip": build_zip(
            {"flutter_patched_sdk_product/platform_strong.dill": b"dill"}
        ),
        "linux-x64-flutter-gtk.zip": build_zip(
            {
                "libflutter_engine.so": b"\x7fELF engine",
                "gen_snapshot": b"\x7fELF gen_snapshot",
                "flutter_embedder.h": b"/* header */",
            },
            modes={"libflutter_engine.so": 0o755, "gen_snapshot": 0o755},
        ),
    }


def _windows_archives():
    engine = {
        name: name.encode()
        for name in (
            "flutter_engine.dll",
            "flutter_engine.dll.exp",
            "flutter_engine.dll.lib",
            "flutter_engine.dll.pdb",
            "gen_snapshot.exe",
        )
    }
    return {
        "artifacts.zip": build_zip({"icudtl.dat": b"icu"}),
        "dart-sdk-windows-x64.zip": build_zip({"dart-sdk/bin/dart.exe": b"dart"}),
        "flutter_patched_sdk_product.zip": build_zip(
            {"flutter_patched_sdk_product/platform_strong.dill": b"dill"}
        ),
        "windows-x64-flutter.zip": build_zip(engine),
    }


def _darwin_archives():
    framework = build_zip(
        {
            "Versions/": None,
            "Versions/A/": None,
            "Versions/A/FlutterMacOS": b"mach-o engine",
            "Versions/A/Headers/FlutterMacOS.h": b"/* header */",
            "Versions/A/Modules/module.modulemap": b"framework module FlutterMacOS {}",
            "Versions/A/Resources/Info.plist": b"<plist/>",
        },
        modes={"Versions/A/FlutterMacOS": 0o755},
    )
    return {
        "artifacts.zip": build_zip(
            {
                "icudtl.dat": b"icu",
                "gen_snapshot": b"gen_snapshot",
                "frontend_server.dart.snapshot": b"frontend",
            }
        ),
        "dart-sdk-darwin-x64.zip": build_zip({"dart-sdk/bin/dart": b"dart"}),
        "flutter_patched_sdk_product.zip": build_zip(
            {"flutter_patched_sdk_product/platform_strong.dill": b"dill"}
        ),
        "FlutterMacOS.framework.zip": build_zip(
            {"FlutterMacOS.framework.zip": framework}
        ),
    }


ENGINE_ARCHIVES = {
    "linux": _linux_archives,
    "windows": _windows_archives,
    "darwin": _darwin_archives,
}


@pytest.fixture
def fake_fetcher():
    """Factory for a FakeFetcher serving the engine archives of a target OS."""

    def _fake_fetcher(target_os, fail_on=()):
        return FakeFetcher(ENGINE_ARCHIVES[target_os](), fail_on=fail_on)

    return _fake_fetcher


@pytest.fixture
def mock_strip():
    """Replace the strip invocation of the platform assembler."""
    with patch("hoverkit.engine.assembler.subprocess.run") as mock_run:
        mock_run.side_effect = lambda command, **kwargs: subprocess.CompletedProcess(
            command, 0, "", ""
        )
        yield mock_run


@pytest.fixture
def cache_root(tmp_path):
    """Empty cache root without whitespace in its path."""
    root = tmp_path / "cache"
    root.mkdir()
    return root

