#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#
# Exception classes
#

from __future__ import annotations


class SparseBackendError(Exception):
    """Base class for every failure raised by a sparse matrix backend."""


class StoreError(SparseBackendError):
    """A store-level operation failed, e.g. creating an array at a key that exists."""


class StoreUnavailableError(StoreError):
    """The backend location could not be opened or created."""


class ShapeMismatchError(SparseBackendError):
    """A shape attribute is already recorded with a different value."""

    def __init__(self, attr: str, old, new) -> None:
        super().__init__(f"{attr} mismatch: stored {old}, got {new}")
        self.attr = attr
        self.old = old
        self.new = new


class NotIndexedError(SparseBackendError):
    """A read was requested on an orientation that was never built."""


class DimensionOutOfRangeError(SparseBackendError, IndexError):
    """A requested or stored row/column index lies beyond the matrix dimension."""


class MalformedSourceError(SparseBackendError, ValueError):
    """An import source (text header/line or array) could not be parsed."""


class IncompleteMetadataError(SparseBackendError):
    """nrow/ncol/nnz are not all recorded in the backend."""
