#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Conversions between coordinate triplets and compressed (CSC/CSR) arrays."""


from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import scipy.sparse as sp_sparse

from asapdata.errors import MalformedSourceError

DATA_DTYPE = np.float32
INDEX_DTYPE = np.uint64


class CompressedBlock(NamedTuple):
    """One orientation of a sparse matrix: values, secondary positions and pointers."""

    data: np.ndarray
    indices: np.ndarray
    indptr: np.ndarray


@dataclass(frozen=True, eq=False)
class Triplets:
    """Entries read back from a backend.

    rows/cols are labels in the result's own coordinate system: for a
    multi-column read, column k is the k-th requested column, whose index in
    the stored matrix is source_index[k] (likewise for rows).
    """

    nrow: int
    ncol: int
    rows: np.ndarray
    cols: np.ndarray
    values: np.ndarray
    source_index: np.ndarray

    def __len__(self) -> int:
        return len(self.values)

    def tolist(self) -> list[tuple[int, int, float]]:
        return list(zip(self.rows.tolist(), self.cols.tolist(), self.values.tolist()))

    def tocoo(self) -> sp_sparse.coo_matrix:
        return sp_sparse.coo_matrix(
            (self.values, (self.rows, self.cols)), shape=(self.nrow, self.ncol)
        )

    def tocsc(self) -> sp_sparse.csc_matrix:
        return self.tocoo().tocsc()

    def tocsr(self) -> sp_sparse.csr_matrix:
        return self.tocoo().tocsr()

    def toarray(self) -> np.ndarray:
        return self.tocoo().toarray()


def compress_triplets(
    primary: np.ndarray, secondary: np.ndarray, values: np.ndarray, primary_dim: int
) -> CompressedBlock:
    """Build a compressed block from unordered triplets.

    Entries are stably sorted by (primary, secondary), so entries that share
    both coordinates keep their input order. Duplicates are not summed.

    Args:
      primary (np.array): Primary-axis index of each entry (column for CSC).
      secondary (np.array): Secondary-axis index of each entry (row for CSC).
      values (np.array): Entry values.
      primary_dim (int): Size of the primary axis.

    Returns:
      CompressedBlock
    """
    primary = np.asarray(primary, dtype=np.int64)
    secondary = np.asarray(secondary, dtype=np.int64)
    values = np.asarray(values, dtype=DATA_DTYPE)
    assert len(primary) == len(secondary) == len(values)

    # lexsort is stable and sorts by the last key first
    order = np.lexsort((secondary, primary))

    counts = np.bincount(primary, minlength=primary_dim)
    assert len(counts) == primary_dim
    indptr = np.zeros(primary_dim + 1, dtype=INDEX_DTYPE)
    indptr[1:] = np.cumsum(counts)

    return CompressedBlock(
        data=values[order],
        indices=secondary[order].astype(INDEX_DTYPE),
        indptr=indptr,
    )


def dense_to_triplets(
    array, threshold: float | None = None
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Pick out the entries of a dense matrix that are worth storing.

    Args:
      array (np.array): 2-D matrix.
      threshold (float): If given, keep entries whose absolute value exceeds it;
        otherwise keep every non-zero entry.

    Returns:
      (rows, cols, values), row-major order.
    """
    array = np.asarray(array)
    if array.ndim != 2:
        raise MalformedSourceError(f"Expected a 2-D array, got shape {array.shape}")
    if threshold is None:
        mask = array != 0
    else:
        mask = np.abs(array) > threshold
    rows, cols = np.nonzero(mask)
    return rows, cols, array[rows, cols].astype(DATA_DTYPE)


def scipy_to_triplets(matrix) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Explicitly stored entries of a scipy sparse matrix as (rows, cols, values)."""
    coo = sp_sparse.coo_matrix(matrix)
    return coo.row, coo.col, coo.data.astype(DATA_DTYPE)


def validate_block(block: CompressedBlock, secondary_dim: int) -> None:
    """Check the structural invariants of a compressed block."""
    indptr = block.indptr
    assert indptr[0] == 0
    assert indptr[-1] == len(block.data) == len(block.indices)
    # Check to make sure indptr increases monotonically (to catch overflow bugs)
    assert np.all(np.diff(indptr.astype(np.int64)) >= 0)
    assert len(block.indices) == 0 or block.indices.max() < secondary_dim
