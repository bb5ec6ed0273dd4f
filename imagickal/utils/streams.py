"""Helpers for paths vs. stream handles"""

import asyncio
import functools
import inspect
import os
import tempfile
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Tuple

import aiofiles
import aiofiles.os

CHUNK_SIZE = 64 * 1024

# Characters that keep their meaning inside a double-quoted shell word
_SHELL_SPECIAL = ('\\', '"', '$', '`')


def is_path(obj: Any) -> bool:
    return isinstance(obj, (str, os.PathLike))


def is_readable_stream(obj: Any) -> bool:
    return not is_path(obj) and callable(getattr(obj, 'read', None))


def is_writable_stream(obj: Any) -> bool:
    return not is_path(obj) and callable(getattr(obj, 'write', None))


def is_stream(obj: Any) -> bool:
    return is_readable_stream(obj) or is_writable_stream(obj)


def quote_path(path: Any) -> str:
    """Double-quote a path for the shell"""
    text = os.fspath(path)
    for char in _SHELL_SPECIAL:
        text = text.replace(char, '\\' + char)
    return f'"{text}"'


def pipe_or_path(obj: Any, format: Optional[str] = None) -> str:
    """Render a source/destination: ``-`` for streams, a quoted path otherwise"""
    prefix = f'{format}:' if format else ''
    if is_stream(obj):
        return f'{prefix}-'
    return f'{prefix}{quote_path(obj)}'


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def read_chunk(stream: Any, size: int = CHUNK_SIZE) -> bytes:
    """Read from a sync file-like or an async one (aiofiles handles)"""
    data = await _maybe_await(stream.read(size))
    if isinstance(data, str):
        data = data.encode('latin-1')
    return data or b''


async def write_chunk(stream: Any, data: bytes) -> None:
    await _maybe_await(stream.write(data))


async def flush_stream(stream: Any) -> None:
    flush = getattr(stream, 'flush', None)
    if callable(flush):
        await _maybe_await(flush())


async def read_all(stream: Any) -> bytes:
    chunks = []
    while True:
        chunk = await read_chunk(stream)
        if not chunk:
            break
        chunks.append(chunk)
    return b''.join(chunks)


@asynccontextmanager
async def tee(stream: Any, spool_dir: Optional[str] = None) -> AsyncIterator[Tuple[Any, Any]]:
    """Duplicate a single-use stream into two independent readable copies.

    The source is drained exactly once into a spool file; the two copies are
    separate async handles on it, each starting at offset 0. The spool file is
    removed on exit.
    """
    loop = asyncio.get_running_loop()
    fd, spool_path = await loop.run_in_executor(
        None, functools.partial(tempfile.mkstemp, prefix='imagickal-', dir=spool_dir)
    )
    os.close(fd)
    try:
        async with aiofiles.open(spool_path, 'wb') as spool:
            while True:
                chunk = await read_chunk(stream)
                if not chunk:
                    break
                await spool.write(chunk)

        async with aiofiles.open(spool_path, 'rb') as first, aiofiles.open(spool_path, 'rb') as second:
            yield first, second
    finally:
        await aiofiles.os.remove(spool_path)
