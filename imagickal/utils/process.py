"""Run a shell command line with optional stdin/stdout streaming"""

import asyncio
from typing import Any, Dict, Optional

from ..config import DEFAULT_MAX_BUFFER
from ..exceptions import ExternalToolError, OutputLimitError
from .logger import logger
from .streams import CHUNK_SIZE, flush_stream, read_chunk, write_chunk

# Keys of exec_options that would break the stdio wiring below
_RESERVED_OPTIONS = ('stdin', 'stdout', 'stderr')


async def _feed(source: Any, writer: asyncio.StreamWriter) -> None:
    """Copy a readable stream into the process stdin, then close it"""
    try:
        while True:
            chunk = await read_chunk(source, CHUNK_SIZE)
            if not chunk:
                break
            writer.write(chunk)
            await writer.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The process stopped reading; its exit status tells what happened
        logger.debug("stdin closed by process before input was fully written")
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("stdin pipe already closed by process")


async def _drain(reader: asyncio.StreamReader, sink: Any, limit: int, command: str,
                 name: str) -> bytes:
    """Read a process pipe to EOF, into ``sink`` or into a bounded buffer"""
    buffered = bytearray()
    while True:
        chunk = await reader.read(CHUNK_SIZE)
        if not chunk:
            break
        if sink is not None:
            await write_chunk(sink, chunk)
            continue
        buffered.extend(chunk)
        if len(buffered) > limit:
            raise OutputLimitError(
                f"{name} exceeded max_buffer of {limit} bytes: {command}",
                command=command,
            )
    if sink is not None:
        await flush_stream(sink)
    return bytes(buffered)


async def run_command(
    command: str,
    stdin: Any = None,
    stdout: Any = None,
    max_buffer: int = DEFAULT_MAX_BUFFER,
    exec_options: Optional[Dict[str, Any]] = None,
) -> bytes:
    """Run ``command`` through the shell and wait for it to finish.

    Args:
        command: full command line
        stdin: readable stream fed to the process, or None
        stdout: writable stream receiving the process output, or None to buffer it
        max_buffer: ceiling for buffered stdout and for stderr
        exec_options: extra keyword arguments for ``asyncio.create_subprocess_shell``

    Returns:
        bytes: buffered stdout, empty when ``stdout`` was given

    Raises:
        ExternalToolError: non-zero exit status, carries the tool's stderr
        OutputLimitError: output went past ``max_buffer``; the process is killed
    """
    options = {k: v for k, v in (exec_options or {}).items() if k not in _RESERVED_OPTIONS}

    proc = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        **options,
    )

    tasks = [
        asyncio.ensure_future(_drain(proc.stdout, stdout, max_buffer, command, "stdout")),
        asyncio.ensure_future(_drain(proc.stderr, None, max_buffer, command, "stderr")),
    ]
    if stdin is not None:
        tasks.append(asyncio.ensure_future(_feed(stdin, proc.stdin)))

    try:
        results = await asyncio.gather(*tasks)
        returncode = await proc.wait()
    except BaseException:
        # Covers our own errors and cancellation from a caller-side timeout
        for task in tasks:
            task.cancel()
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    stdout_data, stderr_data = results[0], results[1]
    if returncode != 0:
        stderr_text = stderr_data.decode('utf-8', errors='replace')
        raise ExternalToolError(
            f"Command failed with exit code {returncode}: {command}\n{stderr_text}",
            command=command,
            returncode=returncode,
            stderr=stderr_text,
        )

    return stdout_data
