"""
Continuous line draining of child process output.

A child whose pipe fills up blocks on write, so output is read for as long
as the pipe is open regardless of whether anyone consumes the lines. A pipe
that cannot be read any more takes its process tree down with it.
"""

import asyncio
import logging
from typing import Callable

from ..system.processes import kill_process_tree
from ..validation import OutputStreamError

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_READ_ERRORS = 5


def decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def drain_lines(
    reader: asyncio.StreamReader,
    on_line: Callable[[str], None],
    chunk_size: int = 65536,
) -> int:
    """
    Read ``reader`` to EOF, calling ``on_line`` for every line in order.

    Lines longer than the reader's buffer limit are delivered in chunks.
    Transient read errors are logged and reading resumes.

    Returns:
        Number of lines delivered

    Raises:
        OutputStreamError: After MAX_CONSECUTIVE_READ_ERRORS failed reads in a row
    """
    delivered = 0
    consecutive_errors = 0
    # Set after a chunk of an over-long line; its bare terminator is not a line.
    in_long_line = False

    while True:
        chunked = False
        try:
            raw = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # EOF; flush a final unterminated line.
            if e.partial:
                on_line(decode_line(e.partial))
                delivered += 1
            break
        except asyncio.LimitOverrunError as e:
            raw = await reader.read(max(1, min(e.consumed, chunk_size)))
            chunked = True
        except (ConnectionError, OSError) as e:
            consecutive_errors += 1
            logger.warning(f"Transient error reading build output: {e}")
            if consecutive_errors >= MAX_CONSECUTIVE_READ_ERRORS:
                raise OutputStreamError(
                    f"Output stream failed {consecutive_errors} times in a row, last error: {e}"
                ) from e
            continue

        consecutive_errors = 0
        if not raw:
            break
        if in_long_line and not chunked and raw in (b"\n", b"\r\n"):
            in_long_line = False
            continue
        in_long_line = chunked
        on_line(decode_line(raw))
        delivered += 1

    return delivered


async def drain_process(
    process: asyncio.subprocess.Process,
    on_line: Callable[[str], None],
    name: str = "process",
) -> int:
    """
    Drain the merged output of ``process``.

    If the pipe has to be abandoned the process tree is killed, so a later
    wait() cannot hang on a child blocked writing to a full pipe.
    """
    try:
        return await drain_lines(process.stdout, on_line)
    except OutputStreamError:
        logger.error(f"Abandoning output of {name} (PID: {process.pid})")
        if process.returncode is None:
            kill_process_tree(process.pid, name)
        raise


def truncate_line(line: str, max_length: int) -> str:
    """Cut ``line`` to the display budget."""
    if len(line) <= max_length:
        return line
    return line[:max_length]
