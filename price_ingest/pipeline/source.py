"""
Stream source: lazily read an input file line by line.

Files ending in `.gz` are decompressed transparently. Lines are yielded as
raw bytes (terminator stripped) so that very large files never need to be
held in memory. A line longer than the configured maximum is a framing
problem and ends the file with `LineTooLongError`; any open, read or
decompression failure ends it with `StreamError`.
"""

from __future__ import annotations

import gzip
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from price_ingest.config import ONE_MIB

COMPRESSED_SUFFIXES = (".gz",)

_READ_ERRORS = (OSError, EOFError, zlib.error)  # gzip.BadGzipFile is an OSError


class StreamError(Exception):
    """Fatal error for the file being streamed."""


class LineTooLongError(StreamError):
    """A line exceeded the maximum permitted length."""


@dataclass(frozen=True)
class SourceLine:
    number: int
    data: bytes


def is_compressed(path: Union[str, Path]) -> bool:
    return str(path).lower().endswith(COMPRESSED_SUFFIXES)


def open_stream(path: Union[str, Path]) -> BinaryIO:
    """
    Open `path` for binary reading, wrapping it in a gzip reader when needed.
    """
    try:
        if is_compressed(path):
            return gzip.open(path, "rb")  # type: ignore[return-value]
        return open(path, "rb")
    except _READ_ERRORS as exc:
        raise StreamError(f"failed to open {path}: {exc}") from exc


def iter_lines(path: Union[str, Path], max_line_bytes: int = ONE_MIB) -> Iterator[SourceLine]:
    """
    Yield every physical line of `path` with its 1-based line number.

    The generator is forward-only; re-reading requires calling it again.
    """
    stream = open_stream(path)
    # Room for the longest allowed line plus a CRLF terminator.
    read_limit = max_line_bytes + 2
    number = 0
    with stream:
        while True:
            try:
                raw = stream.readline(read_limit)
            except _READ_ERRORS as exc:
                raise StreamError(f"failed to read {path} after line {number}: {exc}") from exc
            if not raw:
                return
            number += 1
            data = raw.rstrip(b"\r\n")
            unterminated = len(raw) == read_limit and not raw.endswith(b"\n")
            if len(data) > max_line_bytes or unterminated:
                raise LineTooLongError(
                    f"line {number} of {path} exceeds {max_line_bytes} bytes"
                )
            yield SourceLine(number=number, data=data)


__all__ = [
    "COMPRESSED_SUFFIXES",
    "LineTooLongError",
    "SourceLine",
    "StreamError",
    "is_compressed",
    "iter_lines",
    "open_stream",
]
