#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Matrix-level shape attributes (nrow, ncol, nnz) at the store root.

Shape attributes are write-once: the first writer sets them, every later
writer must agree with what is stored.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import asapdata.h5_constants as h5_constants
from asapdata.errors import ShapeMismatchError
from asapdata.hdf5 import StoreHandle


class MergeResult(enum.Enum):
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class MatrixShape:
    nrow: int
    ncol: int
    nnz: int

    def __post_init__(self):
        for attr in h5_constants.H5_SHAPE_ATTRS:
            value = getattr(self, attr)
            if value < 0:
                raise ValueError(f"{attr} must be non-negative, got {value}")

    def as_dict(self) -> dict[str, int]:
        return {attr: getattr(self, attr) for attr in h5_constants.H5_SHAPE_ATTRS}


def merge_attr(old: int | None, new: int) -> MergeResult:
    """Decide what recording new over a previously stored value means."""
    if old is None:
        return MergeResult.UPDATED
    if int(old) == int(new):
        return MergeResult.UNCHANGED
    return MergeResult.CONFLICT


def _get_int_attr(store: StoreHandle, name: str) -> int | None:
    value = store.get_attr(name)
    if value is None:
        return None
    return int(value)


def num_rows(store: StoreHandle) -> int | None:
    return _get_int_attr(store, h5_constants.H5_NROW_ATTR)


def num_columns(store: StoreHandle) -> int | None:
    return _get_int_attr(store, h5_constants.H5_NCOL_ATTR)


def num_non_zeros(store: StoreHandle) -> int | None:
    return _get_int_attr(store, h5_constants.H5_NNZ_ATTR)


def load_shape(store: StoreHandle) -> MatrixShape | None:
    """The recorded shape, or None unless all three attributes exist."""
    nrow, ncol, nnz = num_rows(store), num_columns(store), num_non_zeros(store)
    if nrow is None or ncol is None or nnz is None:
        return None
    return MatrixShape(nrow, ncol, nnz)


def verify_shape(store: StoreHandle, shape: MatrixShape) -> None:
    """Raise ShapeMismatchError if recording shape would conflict, without writing anything."""
    for attr, value in shape.as_dict().items():
        old = _get_int_attr(store, attr)
        if merge_attr(old, value) is MergeResult.CONFLICT:
            raise ShapeMismatchError(attr, old, value)


def record_shape(store: StoreHandle, shape: MatrixShape) -> dict[str, MergeResult]:
    """Set each shape attribute that is missing and verify those already present.

    Attributes are processed in the order nrow, ncol, nnz. A stored value is
    never overwritten.

    Raises:
        ShapeMismatchError: a stored attribute differs from shape.
    """
    results = {}
    for attr, value in shape.as_dict().items():
        old = _get_int_attr(store, attr)
        result = merge_attr(old, value)
        if result is MergeResult.CONFLICT:
            raise ShapeMismatchError(attr, old, value)
        if result is MergeResult.UPDATED:
            store.set_attr(attr, value)
        results[attr] = result
    return results
