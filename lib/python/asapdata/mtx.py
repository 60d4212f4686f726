#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Reading and writing coordinate-list (Matrix Market style) text files.

File layout::

    <header line>
    [% comment lines]
    <nrow> <ncol> <nnz>
    <row> <col> <value>      (nnz lines, 1-based)
"""

from __future__ import annotations

import logging
from typing import NamedTuple, TextIO

import numpy as np
import pandas as pd

import asapdata.asap_io as asap_io
import asapdata.h5_constants as h5_constants
from asapdata.errors import MalformedSourceError
from asapdata.metadata import MatrixShape
from asapdata.sparse import DATA_DTYPE


class MtxEntries(NamedTuple):
    """Entries of a coordinate file, with 0-based row and column indices."""

    shape: MatrixShape
    rows: np.ndarray
    cols: np.ndarray
    values: np.ndarray


def _read_shape_line(stream: TextIO, filename) -> MatrixShape:
    header = stream.readline()
    if not header:
        raise MalformedSourceError(f"Empty coordinate file: {filename}")

    while True:
        line = stream.readline()
        if not line:
            break
        line = line.strip()
        if not line or line.startswith(h5_constants.MTX_COMMENT_CHAR):
            continue
        fields = line.split()
        if len(fields) != 3:
            raise MalformedSourceError(
                f"Expected '<nrow> <ncol> <nnz>' in {filename}, got: {line!r}"
            )
        try:
            return MatrixShape(*(int(x) for x in fields))
        except ValueError as e:
            raise MalformedSourceError(f"Invalid shape line in {filename}: {line!r}") from e

    raise MalformedSourceError(f"No shape line found in {filename}")


def load_mtx_entries(filename) -> MtxEntries:
    """Parse a coordinate file, optionally gzip or lz4 compressed.

    Raises:
        MalformedSourceError: the header, shape line or any entry does not parse,
            an index falls outside the declared shape, or the number of entries
            differs from the declared nnz.
    """
    with asap_io.open_maybe_gzip(filename, "r") as stream:
        shape = _read_shape_line(stream, filename)
        try:
            table = pd.read_csv(
                stream,
                sep=r"\s+",
                header=None,
                comment=h5_constants.MTX_COMMENT_CHAR,
                dtype={0: np.int64, 1: np.int64, 2: np.float64},
            )
        except pd.errors.EmptyDataError:
            table = pd.DataFrame({0: [], 1: [], 2: []})
        except (ValueError, pd.errors.ParserError) as e:
            raise MalformedSourceError(f"Could not parse entries of {filename}: {e}") from e

    if table.shape[1] != 3:
        raise MalformedSourceError(
            f"Expected 3 fields per entry in {filename}, got {table.shape[1]}"
        )
    if len(table) != shape.nnz:
        raise MalformedSourceError(
            f"{filename} declares {shape.nnz} entries but contains {len(table)}"
        )

    rows = table[0].to_numpy(dtype=np.int64) - 1
    cols = table[1].to_numpy(dtype=np.int64) - 1
    values = table[2].to_numpy(dtype=DATA_DTYPE)

    if len(rows) > 0:
        if rows.min() < 0 or rows.max() >= shape.nrow:
            raise MalformedSourceError(f"Row index out of range [1, {shape.nrow}] in {filename}")
        if cols.min() < 0 or cols.max() >= shape.ncol:
            raise MalformedSourceError(
                f"Column index out of range [1, {shape.ncol}] in {filename}"
            )

    logging.debug(
        "read %d entries of a %d x %d matrix from %s", len(rows), shape.nrow, shape.ncol, filename
    )
    return MtxEntries(shape, rows, cols, values)


def write_mtx_header(stream: TextIO, shape: MatrixShape) -> None:
    stream.write(h5_constants.MTX_HEADER + "\n")
    stream.write(f"{shape.nrow}\t{shape.ncol}\t{shape.nnz}\n")


def write_mtx_entries(stream: TextIO, rows, col: int, values) -> None:
    """Write one column's entries as 1-based '<row> <col> <value>' lines."""
    col += 1
    stream.writelines(f"{r + 1}\t{col}\t{v}\n" for r, v in zip(rows.tolist(), values))
