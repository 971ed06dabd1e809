"""
Move and copy primitives.

move_file renames within one filesystem and falls back to copy + delete
across filesystems. copy_file streams the content and carries the source's
permission bits over. Neither cleans up after a failure: a partially written
destination stays on disk so the operator can see what happened.
"""

import asyncio
import errno
import logging
import os
import shutil

import aiofiles
import aiofiles.os

from tosser.core.exceptions import SourceRemovalError

DEFAULT_CHUNK_SIZE = 1024 * 1024


async def _same_device(src: str, dst: str) -> bool:
    src_stat = await aiofiles.os.stat(src)
    dst_dir_stat = await aiofiles.os.stat(os.path.dirname(dst) or ".")
    return src_stat.st_dev == dst_dir_stat.st_dev


async def copy_file(src: str, dst: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
    """
    Copy src to dst (created or truncated) and copy the permission bits.

    A failure while streaming takes precedence over a failure while closing
    dst; a close failure after a clean copy is raised, never dropped.

    Raises:
        OSError: on any open/read/write/close/chmod failure
    """
    async with aiofiles.open(src, "rb") as source:
        destination = await aiofiles.open(dst, "wb")
        try:
            while True:
                chunk = await source.read(chunk_size)
                if not chunk:
                    break
                await destination.write(chunk)
        except BaseException:
            try:
                await destination.close()
            except OSError as close_error:
                logging.debug(f"Closing {dst} after failed copy also failed: {close_error}")
            raise
        await destination.close()

    await asyncio.to_thread(shutil.copymode, src, dst)


async def move_file(src: str, dst: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
    """
    Move src to dst.

    Same filesystem: atomic rename. Otherwise the source is opened read-write
    to surface permission problems before anything is copied, then copied and
    removed. If the source is already gone when we remove it, someone else
    removed it and the move still counts as done.

    Raises:
        OSError: rename, access check or copy failed
        SourceRemovalError: copied, but the source could not be removed
    """
    if await _same_device(src, dst):
        try:
            await aiofiles.os.rename(src, dst)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            logging.debug(f"Rename crosses devices, falling back to copy: {src} -> {dst}")

    # Adgangstjek før vi kopierer
    async with aiofiles.open(src, "r+b"):
        pass

    await copy_file(src, dst, chunk_size)

    try:
        await aiofiles.os.remove(src)
    except FileNotFoundError as e:
        logging.warning(
            f"File moved, but source was already removed by someone else: {src} -> {dst} ({e})"
        )
    except OSError as e:
        raise SourceRemovalError(src, dst, e) from e
