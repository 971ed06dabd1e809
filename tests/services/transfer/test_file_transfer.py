"""
Tests for move_file / copy_file primitives.

Cross-device moves are simulated by patching the same-device check, so the
copy + delete fallback runs on a single tmp filesystem.
"""

import errno
import os
import stat
from unittest.mock import AsyncMock, MagicMock, patch

import aiofiles
import pytest

from tosser.core.exceptions import SourceRemovalError
from tosser.services.transfer import file_transfer
from tosser.services.transfer.file_transfer import copy_file, move_file


@pytest.fixture
def source_file(tmp_path):
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    path = src_dir / "video.bin"
    path.write_bytes(b"content " * 1000)
    return path


@pytest.fixture
def dest_dir(tmp_path):
    path = tmp_path / "dst"
    path.mkdir()
    return path


class TestCopyFile:
    @pytest.mark.asyncio
    async def test_copy_content_and_keep_source(self, source_file, dest_dir):
        dst = dest_dir / source_file.name

        await copy_file(str(source_file), str(dst))

        assert source_file.exists()
        assert dst.read_bytes() == source_file.read_bytes()

    @pytest.mark.asyncio
    async def test_copy_in_small_chunks(self, source_file, dest_dir):
        dst = dest_dir / source_file.name

        await copy_file(str(source_file), str(dst), chunk_size=7)

        assert dst.read_bytes() == source_file.read_bytes()

    @pytest.mark.asyncio
    async def test_copy_propagates_permission_bits(self, source_file, dest_dir):
        os.chmod(source_file, 0o640)
        dst = dest_dir / source_file.name

        await copy_file(str(source_file), str(dst))

        assert stat.S_IMODE(dst.stat().st_mode) == stat.S_IMODE(source_file.stat().st_mode)

    @pytest.mark.asyncio
    async def test_copy_truncates_existing_destination(self, source_file, dest_dir):
        dst = dest_dir / source_file.name
        dst.write_bytes(b"x" * 100_000)

        await copy_file(str(source_file), str(dst))

        assert dst.stat().st_size == source_file.stat().st_size

    @pytest.mark.asyncio
    async def test_copy_empty_file(self, tmp_path, dest_dir):
        src = tmp_path / "empty"
        src.touch()
        dst = dest_dir / "empty"

        await copy_file(str(src), str(dst))

        assert dst.exists()
        assert dst.stat().st_size == 0

    @pytest.mark.asyncio
    async def test_copy_missing_source_raises(self, tmp_path, dest_dir):
        with pytest.raises(FileNotFoundError):
            await copy_file(str(tmp_path / "missing"), str(dest_dir / "missing"))
        assert not (dest_dir / "missing").exists()

    @pytest.mark.asyncio
    async def test_copy_into_missing_directory_raises(self, source_file, tmp_path):
        with pytest.raises(OSError):
            await copy_file(str(source_file), str(tmp_path / "nope" / "video.bin"))


class TestCopyErrorPrecedence:
    """Failures while streaming win over failures while closing the destination."""

    @staticmethod
    def open_with_destination(destination):
        real_open = aiofiles.open

        def fake_open(path, mode="r", *args, **kwargs):
            if mode == "wb":
                async def opened():
                    return destination

                return opened()
            return real_open(path, mode, *args, **kwargs)

        return patch("aiofiles.open", side_effect=fake_open)

    @pytest.mark.asyncio
    async def test_close_error_after_clean_copy_is_raised(self, source_file, dest_dir):
        destination = MagicMock()
        destination.write = AsyncMock()
        destination.close = AsyncMock(side_effect=OSError(errno.ENOSPC, "No space left on device"))

        with self.open_with_destination(destination):
            with pytest.raises(OSError) as exc_info:
                await copy_file(str(source_file), str(dest_dir / source_file.name))

        assert exc_info.value.errno == errno.ENOSPC
        assert destination.write.await_count >= 1
        destination.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_write_error_wins_over_close_error(self, source_file, dest_dir):
        destination = MagicMock()
        destination.write = AsyncMock(side_effect=OSError(errno.EIO, "I/O error"))
        destination.close = AsyncMock(side_effect=OSError(errno.ENOSPC, "No space left on device"))

        with self.open_with_destination(destination):
            with pytest.raises(OSError) as exc_info:
                await copy_file(str(source_file), str(dest_dir / source_file.name))

        assert exc_info.value.errno == errno.EIO
        destination.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_permissions_not_copied_after_failure(self, source_file, dest_dir):
        destination = MagicMock()
        destination.write = AsyncMock()
        destination.close = AsyncMock(side_effect=OSError(errno.ENOSPC, "No space left on device"))

        with (
            self.open_with_destination(destination),
            patch("shutil.copymode") as mock_copymode,
        ):
            with pytest.raises(OSError):
                await copy_file(str(source_file), str(dest_dir / source_file.name))

        mock_copymode.assert_not_called()


class TestMoveFile:
    @pytest.mark.asyncio
    async def test_same_device_rename(self, source_file, dest_dir):
        content = source_file.read_bytes()
        dst = dest_dir / source_file.name

        with patch("tosser.services.transfer.file_transfer.copy_file", new_callable=AsyncMock) as mock_copy:
            await move_file(str(source_file), str(dst))
            mock_copy.assert_not_called()

        assert not source_file.exists()
        assert dst.read_bytes() == content

    @pytest.mark.asyncio
    async def test_cross_device_copy_then_delete(self, source_file, dest_dir):
        content = source_file.read_bytes()
        dst = dest_dir / source_file.name

        with patch.object(file_transfer, "_same_device", AsyncMock(return_value=False)):
            await move_file(str(source_file), str(dst))

        assert not source_file.exists()
        assert dst.read_bytes() == content

    @pytest.mark.asyncio
    async def test_exdev_rename_falls_back_to_copy(self, source_file, dest_dir):
        dst = dest_dir / source_file.name
        exdev = OSError(errno.EXDEV, "Invalid cross-device link")

        with patch("aiofiles.os.rename", new_callable=AsyncMock, side_effect=exdev):
            await move_file(str(source_file), str(dst))

        assert not source_file.exists()
        assert dst.exists()

    @pytest.mark.asyncio
    async def test_rename_error_is_raised(self, source_file, dest_dir):
        denied = PermissionError(errno.EACCES, "Permission denied")

        with patch("aiofiles.os.rename", new_callable=AsyncMock, side_effect=denied):
            with pytest.raises(PermissionError):
                await move_file(str(source_file), str(dest_dir / source_file.name))

        assert source_file.exists()

    @pytest.mark.asyncio
    async def test_source_already_removed_counts_as_success(self, source_file, dest_dir):
        dst = dest_dir / source_file.name
        gone = FileNotFoundError(errno.ENOENT, "No such file")

        with (
            patch.object(file_transfer, "_same_device", AsyncMock(return_value=False)),
            patch("aiofiles.os.remove", new_callable=AsyncMock, side_effect=gone),
        ):
            await move_file(str(source_file), str(dst))

        assert dst.exists()

    @pytest.mark.asyncio
    async def test_source_removal_failure_keeps_both_copies(self, source_file, dest_dir):
        dst = dest_dir / source_file.name
        busy = PermissionError(errno.EACCES, "Permission denied")

        with (
            patch.object(file_transfer, "_same_device", AsyncMock(return_value=False)),
            patch("aiofiles.os.remove", new_callable=AsyncMock, side_effect=busy),
        ):
            with pytest.raises(SourceRemovalError) as exc_info:
                await move_file(str(source_file), str(dst))

        assert exc_info.value.cause is busy
        assert source_file.exists()
        assert dst.exists()

    @pytest.mark.asyncio
    async def test_cross_device_access_check_happens_before_copy(self, source_file, dest_dir):
        dst = dest_dir / source_file.name

        with (
            patch.object(file_transfer, "_same_device", AsyncMock(return_value=False)),
            patch("aiofiles.open", side_effect=PermissionError(errno.EACCES, "denied")),
            patch("tosser.services.transfer.file_transfer.copy_file", new_callable=AsyncMock) as mock_copy,
        ):
            with pytest.raises(PermissionError):
                await move_file(str(source_file), str(dst))

        mock_copy.assert_not_called()
        assert source_file.exists()
        assert not dst.exists()

    @pytest.mark.asyncio
    async def test_move_missing_source_raises(self, tmp_path, dest_dir):
        with pytest.raises(FileNotFoundError):
            await move_file(str(tmp_path / "missing"), str(dest_dir / "missing"))
