"""
Unit tests for engine cache validation and population.

Downloads are served by a fake fetcher from in-memory zip archives, so
these tests exercise the real extraction, relocation and stamp handling.
"""

import os
from unittest.mock import patch

import pytest

from hoverkit.core.exceptions import (
    CachePathError,
    EngineCacheError,
    EngineVersionError,
    UnsupportedPlatformError,
)
from hoverkit.core.platform import DEBUG_MODE, PROFILE_MODE, RELEASE_MODE
from hoverkit.engine.cache import (
    VERSION_FILE,
    EngineCacheManager,
    validate_or_update_engine,
)

VERSION = "3b309bda072a6b326e8aa4591a5836af600923ce"


def make_manager(cache_root, fetcher, **kwargs):
    kwargs.setdefault("progress_callback", None)
    return EngineCacheManager(cache_root, fetcher=fetcher, **kwargs)


class TestReadVersionStamp:
    """Test version stamp reading."""

    def test_missing_stamp(self, cache_root):
        """Test an entry without stamp reads as empty."""
        manager = make_manager(cache_root, None)
        assert manager.read_version_stamp(cache_root / "missing") == ""

    def test_exact_content(self, cache_root):
        """Test the stamp is compared byte for byte."""
        (cache_root / VERSION_FILE).write_text(VERSION + "\n")
        manager = make_manager(cache_root, None)
        assert manager.read_version_stamp(cache_root) == VERSION + "\n"

    def test_unreadable_stamp(self, cache_root):
        """Test a stamp that can't be read raises EngineCacheError."""
        (cache_root / VERSION_FILE).mkdir()
        manager = make_manager(cache_root, None)
        with pytest.raises(EngineCacheError, match="cached engine version"):
            manager.read_version_stamp(cache_root)

    def test_binary_stamp_never_matches(self, cache_root):
        """Test a stamp that isn't valid UTF-8 reads as a mismatch."""
        (cache_root / VERSION_FILE).write_bytes(b"\xff\xfe garbage")
        manager = make_manager(cache_root, None)

        stamp = manager.read_version_stamp(cache_root)

        assert isinstance(stamp, str)
        assert stamp != "garbage"
        assert stamp.endswith(" garbage")

    def test_binary_stamp_repopulates(self, cache_root, fake_fetcher, mock_strip):
        """Test an entry with a corrupt stamp is repopulated."""
        entry = cache_root / "hover" / "engine" / "linux-x64"
        entry.mkdir(parents=True)
        (entry / VERSION_FILE).write_bytes(b"\xff\xfe garbage")
        fetcher = fake_fetcher("linux")

        result = make_manager(cache_root, fetcher).validate_or_update("linux", "abc", DEBUG_MODE)

        assert not result.was_cached
        assert fetcher.calls
        assert (entry / VERSION_FILE).read_bytes() == b"abc"


class TestLinuxPopulate:
    """Test populating linux entries."""

    def test_release_entry_layout(self, cache_root, fake_fetcher, mock_strip):
        """Test an AOT entry holds the engine, artifacts, SDKs and gen_snapshot."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)

        result = manager.validate_or_update("linux", VERSION, RELEASE_MODE)

        entry = cache_root / "hover" / "engine" / "linux-x64-release"
        assert result.cache_path == entry
        assert result.version == VERSION
        assert not result.was_cached
        assert (entry / "libflutter_engine.so").is_file()
        assert (entry / "gen_snapshot").is_file()
        assert (entry / "artifacts" / "icudtl.dat").read_bytes() == b"icu"
        assert (entry / "dart-sdk" / "bin" / "dart").is_file()
        assert (entry / "flutter_patched_sdk_product" / "platform_strong.dill").is_file()
        assert (entry / VERSION_FILE).read_text() == VERSION

    def test_headers_stay_in_scratch(self, cache_root, fake_fetcher, mock_strip):
        """Test only the engine file set is relocated from the engine archive."""
        manager = make_manager(cache_root, fake_fetcher("linux"))

        result = manager.validate_or_update("linux", VERSION, RELEASE_MODE)

        assert not (result.cache_path / "flutter_embedder.h").exists()
        assert not (result.cache_path / "engine").exists()

    def test_download_order(self, cache_root, fake_fetcher, mock_strip):
        """Test archives are downloaded one after another in a fixed order."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)

        manager.validate_or_update("linux", VERSION, RELEASE_MODE)

        assert [url.rsplit("/", 1)[-1] for url in fetcher.calls] == [
            "artifacts.zip",
            "dart-sdk-linux-x64.zip",
            "flutter_patched_sdk_product.zip",
            "linux-x64-flutter-gtk.zip",
        ]

    def test_debug_entry(self, cache_root, fake_fetcher, mock_strip):
        """Test JIT entries skip the AOT tools."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)

        result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert result.cache_path.name == "linux-x64"
        assert len(fetcher.calls) == 2
        assert not (result.cache_path / "gen_snapshot").exists()
        assert not (result.cache_path / "dart-sdk").exists()

    def test_engine_is_stripped(self, cache_root, fake_fetcher, mock_strip):
        """Test the engine library is stripped once at populate time."""
        manager = make_manager(cache_root, fake_fetcher("linux"))

        result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        mock_strip.assert_called_once()
        assert mock_strip.call_args[0][0][-1] == str(result.cache_path / "libflutter_engine.so")

    def test_storage_base_url(self, cache_root, fake_fetcher, mock_strip):
        """Test downloads use the configured host."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(
            cache_root, fetcher, storage_base_url="https://storage.flutter-io.cn"
        )

        manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert fetcher.calls[0] == (
            f"https://storage.flutter-io.cn/flutter_infra/flutter/{VERSION}/linux-x64/artifacts.zip"
        )

    def test_lock_file_outside_entry(self, cache_root, fake_fetcher, mock_strip):
        """Test the populate lock lives next to the entry."""
        manager = make_manager(cache_root, fake_fetcher("linux"))

        result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert not any(path.suffix == ".lock" for path in result.cache_path.iterdir())


class TestCacheValidity:
    """Test the version stamp protocol."""

    def test_cache_hit_is_idempotent(self, cache_root, fake_fetcher, mock_strip):
        """Test a second call with the same version downloads nothing."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)

        first = manager.validate_or_update("linux", VERSION, RELEASE_MODE)
        calls = len(fetcher.calls)
        second = manager.validate_or_update("linux", VERSION, RELEASE_MODE)

        assert not first.was_cached
        assert second.was_cached
        assert second.cache_path == first.cache_path
        assert len(fetcher.calls) == calls

    def test_cache_hit_writes_nothing(self, cache_root, fake_fetcher, mock_strip):
        """Test the cache hit path leaves the entry untouched."""
        manager = make_manager(cache_root, fake_fetcher("linux"))
        entry = manager.validate_or_update("linux", VERSION, DEBUG_MODE).cache_path

        def snapshot():
            return {
                path: path.lstat().st_mtime_ns
                for path in [entry, *entry.rglob("*")]
            }

        before = snapshot()
        result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert result.was_cached
        assert snapshot() == before

    def test_stale_entry_is_purged(self, cache_root, fake_fetcher, mock_strip):
        """Test an outdated entry is deleted before repopulating."""
        entry = cache_root / "hover" / "engine" / "linux-x64"
        (entry / "artifacts").mkdir(parents=True)
        (entry / "artifacts" / "leftover.bin").write_bytes(b"old")
        (entry / VERSION_FILE).write_text("1.0")
        manager = make_manager(cache_root, fake_fetcher("linux"))

        result = manager.validate_or_update("linux", "2.0", DEBUG_MODE)

        assert not result.was_cached
        assert (entry / VERSION_FILE).read_text() == "2.0"
        assert not (entry / "artifacts" / "leftover.bin").exists()

    def test_stamp_with_newline_is_stale(self, cache_root, fake_fetcher, mock_strip):
        """Test a stamp that differs only by whitespace doesn't match."""
        entry = cache_root / "hover" / "engine" / "linux-x64"
        entry.mkdir(parents=True)
        (entry / VERSION_FILE).write_text(VERSION + "\n")
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)

        result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert not result.was_cached
        assert fetcher.calls

    def test_failed_populate_leaves_no_stamp(self, cache_root, fake_fetcher, mock_strip):
        """Test the stamp is only written after everything succeeded."""
        fetcher = fake_fetcher("linux", fail_on={"linux-x64-flutter-gtk.zip"})
        manager = make_manager(cache_root, fetcher)

        with pytest.raises(EngineCacheError, match="Failed to download engine"):
            manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        entry = cache_root / "hover" / "engine" / "linux-x64"
        assert (entry / "artifacts" / "icudtl.dat").exists()
        assert not (entry / VERSION_FILE).exists()

    def test_recovers_after_interrupted_populate(self, cache_root, fake_fetcher, mock_strip):
        """Test an entry without stamp is fully repopulated on the next run."""
        broken = make_manager(
            cache_root, fake_fetcher("linux", fail_on={"linux-x64-flutter-gtk.zip"})
        )
        with pytest.raises(EngineCacheError):
            broken.validate_or_update("linux", VERSION, DEBUG_MODE)

        fetcher = fake_fetcher("linux")
        result = make_manager(cache_root, fetcher).validate_or_update(
            "linux", VERSION, DEBUG_MODE
        )

        assert not result.was_cached
        assert len(fetcher.calls) == 2
        assert (result.cache_path / "libflutter_engine.so").exists()
        assert (result.cache_path / VERSION_FILE).read_text() == VERSION

    def test_populated_while_waiting_for_lock(self, cache_root, fake_fetcher, mock_strip):
        """Test the stamp is re-checked once the lock is held."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher)
        entry = cache_root / "hover" / "engine" / "linux-x64"
        stamps = iter(["", VERSION])

        with patch.object(manager, "read_version_stamp", side_effect=lambda path: next(stamps)):
            result = manager.validate_or_update("linux", VERSION, DEBUG_MODE)

        assert result.was_cached
        assert result.cache_path == entry
        assert fetcher.calls == []

    def test_scratch_directory_removed(self, cache_root, fake_fetcher, mock_strip):
        """Test the scratch directory is removed after a failed populate."""
        created = []
        fetcher = fake_fetcher("linux", fail_on={"linux-x64-flutter-gtk.zip"})

        def recording_fetcher(url, destination, progress_callback=None):
            created.append(destination.parent)
            return fetcher(url, destination, progress_callback)

        with pytest.raises(EngineCacheError):
            make_manager(cache_root, recording_fetcher).validate_or_update(
                "linux", VERSION, DEBUG_MODE
            )

        assert created
        assert not any(path.exists() for path in created)

    def test_corrupt_archive(self, cache_root, fake_fetcher, mock_strip):
        """Test an undecodable archive aborts the populate."""
        fetcher = fake_fetcher("linux")
        fetcher.archives["artifacts.zip"] = b"not a zip"

        with pytest.raises(EngineCacheError, match="Failed to extract artifacts"):
            make_manager(cache_root, fetcher).validate_or_update("linux", VERSION, DEBUG_MODE)

    def test_zip_slip_aborts_populate(self, cache_root, tmp_path, fake_fetcher, zip_bytes, mock_strip):
        """Test a traversing archive member aborts the populate."""
        fetcher = fake_fetcher("linux")
        fetcher.archives["artifacts.zip"] = zip_bytes({"../../../../evil.txt": b"pwned"})

        with pytest.raises(EngineCacheError):
            make_manager(cache_root, fetcher).validate_or_update("linux", VERSION, DEBUG_MODE)

        assert not (tmp_path / "evil.txt").exists()
        assert not (cache_root / "evil.txt").exists()


class TestCachePath:
    """Test cache root validation."""

    def test_whitespace_rejected(self, tmp_path, fake_fetcher):
        """Test a cache root with spaces fails before any filesystem change."""
        cache_root = tmp_path / "my cache"
        fetcher = fake_fetcher("linux")

        with pytest.raises(CachePathError, match="spaces"):
            make_manager(cache_root, fetcher).validate_or_update("linux", VERSION, DEBUG_MODE)

        assert fetcher.calls == []
        assert not cache_root.exists()

    def test_unsupported_target(self, cache_root, fake_fetcher):
        with pytest.raises(UnsupportedPlatformError):
            make_manager(cache_root, fake_fetcher("linux")).validate_or_update(
                "haiku", VERSION, DEBUG_MODE
            )


class TestVersionResolution:
    """Test the required engine version lookup."""

    def test_resolver_used_for_empty_version(self, cache_root, fake_fetcher, mock_strip):
        """Test the Flutter SDK's version is used when none is configured."""
        fetcher = fake_fetcher("linux")
        manager = make_manager(cache_root, fetcher, version_resolver=lambda: "sdkpinned")

        result = manager.validate_or_update("linux", "", DEBUG_MODE)

        assert result.version == "sdkpinned"
        assert all("/flutter_infra/flutter/sdkpinned/" in url for url in fetcher.calls)
        assert (result.cache_path / VERSION_FILE).read_text() == "sdkpinned"

    def test_resolver_not_called_with_version(self, cache_root, fake_fetcher, mock_strip):
        """Test an explicit version bypasses the Flutter SDK."""

        def resolver():
            raise AssertionError("resolver must not be called")

        manager = make_manager(cache_root, fake_fetcher("linux"), version_resolver=resolver)
        manager.validate_or_update("linux", VERSION, DEBUG_MODE)

    def test_resolver_failure(self, cache_root, fake_fetcher):
        """Test a missing Flutter SDK is reported."""

        def resolver():
            raise EngineVersionError("Failed to lookup 'flutter' executable")

        manager = make_manager(cache_root, fake_fetcher("linux"), version_resolver=resolver)
        with pytest.raises(EngineVersionError):
            manager.validate_or_update("linux", "", DEBUG_MODE)


class TestOtherPlatforms:
    """Test windows and darwin entries."""

    def test_windows_release(self, cache_root, fake_fetcher):
        """Test windows entries hold the DLL set and gen_snapshot.exe."""
        result = make_manager(cache_root, fake_fetcher("windows")).validate_or_update(
            "windows", VERSION, PROFILE_MODE
        )

        entry = result.cache_path
        assert entry.name == "windows-x64-profile"
        for name in (
            "flutter_engine.dll",
            "flutter_engine.dll.exp",
            "flutter_engine.dll.lib",
            "flutter_engine.dll.pdb",
            "gen_snapshot.exe",
        ):
            assert (entry / name).is_file()

    @pytest.mark.skipif(os.name == "nt", reason="requires POSIX symlinks")
    def test_darwin_release(self, cache_root, fake_fetcher):
        """Test darwin entries hold a linked framework and gen_snapshot in artifacts."""
        result = make_manager(cache_root, fake_fetcher("darwin")).validate_or_update(
            "darwin", VERSION, RELEASE_MODE
        )

        framework = result.cache_path / "FlutterMacOS.framework"
        assert os.readlink(framework / "Versions" / "Current") == "A"
        assert (framework / "FlutterMacOS").read_bytes() == b"mach-o engine"
        assert (framework / "Headers" / "FlutterMacOS.h").exists()
        assert (result.cache_path / "artifacts" / "gen_snapshot").exists()
        assert not (result.cache_path / "gen_snapshot").exists()


class TestValidateOrUpdateEngine:
    """Test the convenience wrapper."""

    def test_passes_options(self, cache_root, fake_fetcher, mock_strip):
        fetcher = fake_fetcher("linux")

        result = validate_or_update_engine(
            "linux", cache_root, VERSION, DEBUG_MODE, fetcher=fetcher, progress_callback=None
        )

        assert result.cache_path == cache_root / "hover" / "engine" / "linux-x64"
        assert fetcher.calls
