#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

from __future__ import annotations

import errno
import gzip
import io
import os
import tempfile
from typing import Literal, TextIO, overload

import lz4.frame as lz4

import asapdata.h5_constants as h5_constants


@overload
def open_maybe_gzip(filename: str | bytes, mode: Literal["r"] = "r") -> TextIO: ...


@overload
def open_maybe_gzip(filename: str | bytes, mode: Literal["w"] = ...) -> TextIO: ...


def open_maybe_gzip(filename: str | bytes, mode: str = "r") -> TextIO:
    # this _must_ be a bytes
    if not isinstance(filename, bytes):
        filename = str(filename).encode()
    if filename.endswith(h5_constants.GZIP_SUFFIX):
        raw = gzip.open(filename, mode[0] + "b", 2)
    elif filename.endswith(h5_constants.LZ4_SUFFIX):
        raw = lz4.open(filename, mode[0] + "b")
    else:
        return open(filename, mode)

    bufsize = 1024 * 1024  # 1MB of buffering
    if mode == "r":
        return io.TextIOWrapper(io.BufferedReader(raw, buffer_size=bufsize))
    elif mode == "w":
        return io.TextIOWrapper(io.BufferedWriter(raw, buffer_size=bufsize))
    else:
        raise ValueError(f"Unsupported mode for compression: {mode}")


def read_lines_of_words(filename: str | bytes) -> list[list[str]]:
    """Read a (possibly compressed) text file as a list of lines of words.

    Words are separated by runs of spaces or tabs. Blank lines yield an
    empty list so that line numbers are preserved.
    """
    with open_maybe_gzip(filename, "r") as f:
        return [line.split() for line in f]


def remove(f: str | bytes, nonexistent_ok: bool = True):
    """Delete a file. By default succeed if it doesn't exist."""
    if nonexistent_ok:
        try:
            os.remove(f)
        except OSError as e:
            if e.errno == errno.ENOENT:
                pass
            else:
                raise
    else:
        os.remove(f)


def make_temp_path(suffix: str = h5_constants.BACKEND_SUFFIX) -> str:
    """Reserve a fresh path in the system temp directory.

    The file itself is not left behind; only the name is reserved.
    """
    fd, path = tempfile.mkstemp(suffix=suffix)
    os.close(fd)
    os.remove(path)
    return path
