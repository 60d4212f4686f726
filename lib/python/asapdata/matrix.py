#!/usr/bin/env python3
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Sparse feature x cell matrix backed by a chunked, compressed HDF5 file.

Layout of a backend file::

    /                       (attributes: nrow, ncol, nnz)
    /by_column/data         float32, nnz
    /by_column/indices      uint64, nnz (row positions)
    /by_column/indptr       uint64, ncol + 1
    /by_row/data            float32, nnz
    /by_row/indices         uint64, nnz (column positions)
    /by_row/indptr          uint64, nrow + 1
    /row_names              [optional]
    /column_names           [optional]

A backend is built once (from a coordinate file, a dense array or a scipy
matrix) and then read many times. Reads never modify the file or the
cached index pointers, so any number of threads may read concurrently once
construction has finished.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import numpy as np
import scipy.sparse as sp_sparse

import asapdata.asap_io as asap_io
import asapdata.h5_constants as h5_constants
import asapdata.metadata as asap_metadata
import asapdata.mtx as asap_mtx
import asapdata.sparse as asap_sparse
from asapdata.config import DEFAULT_CONFIG, BackendConfig
from asapdata.errors import (
    DimensionOutOfRangeError,
    IncompleteMetadataError,
    NotIndexedError,
)
from asapdata.hdf5 import StoreHandle
from asapdata.metadata import MatrixShape


def _group_key(group: str, attr: str) -> str:
    return f"{group}/{attr}"


def _concat(parts: list[np.ndarray], dtype) -> np.ndarray:
    if not parts:
        return np.zeros(0, dtype=dtype)
    return np.concatenate(parts).astype(dtype, copy=False)


class SparseMatrixBackend:
    """A CSC and/or CSR indexed sparse matrix stored in one HDF5 file."""

    def __init__(self, backend_file: str | None = None, config: BackendConfig | None = None):
        """Create a fresh, empty backend.

        Args:
            backend_file: Where to create the backend. Anything already there is
                replaced. A temporary file is used if omitted.
            config: Backend settings.
        """
        self.config = config or DEFAULT_CONFIG
        if backend_file is None:
            backend_file = asap_io.make_temp_path()
        self._store = StoreHandle.create(backend_file, self.config)
        self._by_column_indptr: np.ndarray | None = None
        self._by_row_indptr: np.ndarray | None = None

    @classmethod
    def open(
        cls, backend_file: str, config: BackendConfig | None = None, mode: str = "r"
    ) -> SparseMatrixBackend:
        """Open an existing backend and load its index pointers.

        Raises:
            StoreUnavailableError: the file is missing or not an HDF5 file.
            IncompleteMetadataError: the shape attributes were never recorded.
        """
        config = config or DEFAULT_CONFIG
        store = StoreHandle.open(backend_file, mode=mode, config=config)

        shape = asap_metadata.load_shape(store)
        if shape is None:
            store.close()
            raise IncompleteMetadataError(
                f"Couldn't figure out the size of the sparse matrix in {backend_file}"
            )

        ret = cls.__new__(cls)
        ret.config = config
        ret._store = store
        ret._by_column_indptr = None
        ret._by_row_indptr = None
        ret._log("#rows: %d, #columns: %d, #non-zeros: %d", shape.nrow, shape.ncol, shape.nnz)

        ret.read_column_indptr()
        ret.read_row_indptr()
        return ret

    @classmethod
    def from_mtx_file(
        cls,
        mtx_file: str,
        backend_file: str | None = None,
        index_by_row: bool = False,
        config: BackendConfig | None = None,
    ) -> SparseMatrixBackend:
        """Build a backend from a coordinate file.

        Args:
            mtx_file: Coordinate file, optionally .gz or .lz4 compressed.
            backend_file: Backend to create; defaults to mtx_file + ".h5".
            index_by_row: Also build the CSR orientation.
            config: Backend settings.
        """
        if backend_file is None:
            backend_file = str(mtx_file) + h5_constants.BACKEND_SUFFIX
        ret = cls(backend_file, config)
        ret._log("backend file : %s", backend_file)

        entries = asap_mtx.load_mtx_entries(mtx_file)
        ret._log("importing mtx file by column")
        ret._import_entries(entries, by_row=False)
        if index_by_row:
            ret._log("importing mtx file by row")
            ret._import_entries(entries, by_row=True)

        ret._log("created sparse backend from %s", mtx_file)
        return ret

    @classmethod
    def from_ndarray(
        cls,
        array,
        backend_file: str | None = None,
        index_by_row: bool = False,
        threshold: float | None = None,
        config: BackendConfig | None = None,
    ) -> SparseMatrixBackend:
        """Build a backend from a dense 2-D array, dropping zeros (or values within threshold)."""
        ret = cls(backend_file, config)
        ret.import_ndarray(array, by_row=False, threshold=threshold)
        if index_by_row:
            ret.import_ndarray(array, by_row=True, threshold=threshold)
        return ret

    @classmethod
    def from_scipy(
        cls,
        matrix,
        backend_file: str | None = None,
        index_by_row: bool = False,
        config: BackendConfig | None = None,
    ) -> SparseMatrixBackend:
        """Build a backend from the explicitly stored entries of a scipy sparse matrix."""
        ret = cls(backend_file, config)
        ret.import_scipy(matrix, by_row=False)
        if index_by_row:
            ret.import_scipy(matrix, by_row=True)
        return ret

    def _log(self, msg: str, *args) -> None:
        logging.log(logging.INFO if self.config.verbose else logging.DEBUG, msg, *args)

    ##############
    # life cycle #
    ##############

    @property
    def store(self) -> StoreHandle:
        """The underlying store, shared with everything derived from this backend."""
        return self._store

    @property
    def backend_file(self) -> str:
        return self._store.filename

    def close(self) -> None:
        self._store.close()

    def __enter__(self) -> SparseMatrixBackend:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def initialize_backend(self) -> None:
        """Throw away everything stored and start again with an empty backend file."""
        backend_file = self.backend_file
        self.remove_backend_file()
        self._store = StoreHandle.create(backend_file, self.config)
        self._by_column_indptr = None
        self._by_row_indptr = None

    def remove_backend_file(self) -> None:
        """Close the store and delete the backend file."""
        backend_file = self.backend_file
        self.close()
        asap_io.remove(backend_file)

    def hierarchy(self) -> str:
        tree = self._store.hierarchy()
        self._log("hierarchy_tree:\n%s", tree)
        return tree

    ############
    # metadata #
    ############

    def record_shape(self, nrow: int, ncol: int, nnz: int):
        """Record the matrix shape, or verify it against what is already recorded.

        Raises:
            ShapeMismatchError: an attribute is recorded with a different value.
        """
        return asap_metadata.record_shape(self._store, MatrixShape(nrow, ncol, nnz))

    def num_rows(self) -> int | None:
        return asap_metadata.num_rows(self._store)

    def num_columns(self) -> int | None:
        return asap_metadata.num_columns(self._store)

    def num_non_zeros(self) -> int | None:
        return asap_metadata.num_non_zeros(self._store)

    def shape(self) -> MatrixShape | None:
        return asap_metadata.load_shape(self._store)

    def _require_shape(self) -> MatrixShape:
        shape = self.shape()
        if shape is None:
            raise IncompleteMetadataError("Unable to figure out the size of the backend data")
        return shape

    ##################
    # index pointers #
    ##################

    def _load_indptr(self, group: str) -> np.ndarray | None:
        key = _group_key(group, h5_constants.H5_MATRIX_INDPTR_ATTR)
        if not self._store.has_key(key):
            return None
        indptr = self._store.read_vector(key)
        # Check to make sure indptr increases monotonically (to catch overflow bugs)
        assert np.all(np.diff(indptr.astype(np.int64)) >= 0)
        return indptr

    def read_column_indptr(self) -> None:
        """(Re)load the cached CSC index pointers, if the CSC orientation exists."""
        self._by_column_indptr = self._load_indptr(h5_constants.H5_BY_COLUMN_GROUP)

    def read_row_indptr(self) -> None:
        """(Re)load the cached CSR index pointers, if the CSR orientation exists."""
        self._by_row_indptr = self._load_indptr(h5_constants.H5_BY_ROW_GROUP)

    def has_column_index(self) -> bool:
        return self._by_column_indptr is not None

    def has_row_index(self) -> bool:
        return self._by_row_indptr is not None

    def _indptr(self, by_row: bool) -> np.ndarray:
        indptr = self._by_row_indptr if by_row else self._by_column_indptr
        if indptr is None:
            group = h5_constants.H5_BY_ROW_GROUP if by_row else h5_constants.H5_BY_COLUMN_GROUP
            raise NotIndexedError(f"{self.backend_file} has no {group} index")
        return indptr

    ###########
    # import  #
    ###########

    def _record_block(self, group: str, block: asap_sparse.CompressedBlock) -> None:
        self._store.add_group(group)
        for attr, dtype in h5_constants.H5_MATRIX_ATTRS.items():
            self._store.write_vector(_group_key(group, attr), dtype, getattr(block, attr))

    def _import_triplets(
        self, shape: MatrixShape, rows: np.ndarray, cols: np.ndarray, values: np.ndarray, by_row: bool
    ) -> None:
        asap_metadata.verify_shape(self._store, shape)

        if by_row:
            group = h5_constants.H5_BY_ROW_GROUP
            block = asap_sparse.compress_triplets(rows, cols, values, shape.nrow)
            asap_sparse.validate_block(block, shape.ncol)
        else:
            group = h5_constants.H5_BY_COLUMN_GROUP
            block = asap_sparse.compress_triplets(cols, rows, values, shape.ncol)
            asap_sparse.validate_block(block, shape.nrow)

        self._record_block(group, block)
        asap_metadata.record_shape(self._store, shape)

        if by_row:
            self.read_row_indptr()
        else:
            self.read_column_indptr()

    def _import_entries(self, entries: asap_mtx.MtxEntries, by_row: bool) -> None:
        self._import_triplets(entries.shape, entries.rows, entries.cols, entries.values, by_row)

    def import_mtx_file(self, mtx_file: str, by_row: bool = False) -> None:
        """Build one orientation from a coordinate file.

        Raises:
            MalformedSourceError: the file does not parse.
            ShapeMismatchError: the file disagrees with the recorded shape.
            StoreError: the orientation already exists.
        """
        self._import_entries(asap_mtx.load_mtx_entries(mtx_file), by_row)

    def import_ndarray(self, array, by_row: bool = False, threshold: float | None = None) -> None:
        """Build one orientation from a dense 2-D array."""
        rows, cols, values = asap_sparse.dense_to_triplets(array, threshold)
        nrow, ncol = np.shape(array)
        self._import_triplets(MatrixShape(nrow, ncol, len(values)), rows, cols, values, by_row)

    def import_scipy(self, matrix, by_row: bool = False) -> None:
        """Build one orientation from a scipy sparse matrix."""
        rows, cols, values = asap_sparse.scipy_to_triplets(matrix)
        nrow, ncol = matrix.shape
        self._import_triplets(MatrixShape(nrow, ncol, len(values)), rows, cols, values, by_row)

    ###########
    # reading #
    ###########

    def _read_blocks(self, requested: Iterable[int], by_row: bool) -> asap_sparse.Triplets:
        indptr = self._indptr(by_row)
        shape = self._require_shape()
        if by_row:
            group, primary_dim, secondary_dim = h5_constants.H5_BY_ROW_GROUP, shape.nrow, shape.ncol
        else:
            group, primary_dim, secondary_dim = (
                h5_constants.H5_BY_COLUMN_GROUP,
                shape.ncol,
                shape.nrow,
            )
        data_key = _group_key(group, h5_constants.H5_MATRIX_DATA_ATTR)
        indices_key = _group_key(group, h5_constants.H5_MATRIX_INDICES_ATTR)
        check_bounds = self.config.check_bounds

        source_index = np.fromiter((int(i) for i in requested), dtype=np.int64)
        primary_parts, secondary_parts, value_parts = [], [], []

        for k, i in enumerate(source_index.tolist()):
            if i < 0 or i >= primary_dim:
                if check_bounds:
                    raise DimensionOutOfRangeError(
                        f"Index {i} out of range for dimension {primary_dim}"
                    )
                continue

            # [start, end)
            start, end = int(indptr[i]), int(indptr[i + 1])
            if start == end:
                continue

            values = self._store.read_range(data_key, start, end)
            secondary = self._store.read_range(indices_key, start, end).astype(np.int64)
            if check_bounds and secondary.max() >= secondary_dim:
                raise DimensionOutOfRangeError(
                    f"Stored index {secondary.max()} exceeds dimension {secondary_dim} in {group}"
                )

            primary_parts.append(np.full(end - start, k, dtype=np.int64))
            secondary_parts.append(secondary)
            value_parts.append(values)

        primary = _concat(primary_parts, np.int64)
        secondary = _concat(secondary_parts, np.int64)
        values = _concat(value_parts, asap_sparse.DATA_DTYPE)

        if by_row:
            return asap_sparse.Triplets(
                len(source_index), secondary_dim, primary, secondary, values, source_index
            )
        return asap_sparse.Triplets(
            secondary_dim, len(source_index), secondary, primary, values, source_index
        )

    def read_by_single_column(self, column: int) -> asap_sparse.Triplets:
        """Entries of one column; the result has a single column, labelled 0."""
        return self._read_blocks([column], by_row=False)

    def read_by_columns(self, columns: Sequence[int]) -> asap_sparse.Triplets:
        """Entries of the given columns.

        Column k of the result is columns[k]; result.source_index keeps that mapping.
        """
        return self._read_blocks(columns, by_row=False)

    def read_by_rows(self, rows: Sequence[int]) -> asap_sparse.Triplets:
        """Entries of the given rows.

        Row k of the result is rows[k]; result.source_index keeps that mapping.
        """
        return self._read_blocks(rows, by_row=True)

    def read_columns_csc(self, columns: Sequence[int]) -> sp_sparse.csc_matrix:
        return self.read_by_columns(columns).tocsc()

    def read_columns_ndarray(self, columns: Sequence[int]) -> np.ndarray:
        return self.read_by_columns(columns).toarray()

    def read_rows_csr(self, rows: Sequence[int]) -> sp_sparse.csr_matrix:
        return self.read_by_rows(rows).tocsr()

    def read_rows_ndarray(self, rows: Sequence[int]) -> np.ndarray:
        return self.read_by_rows(rows).toarray()

    #########
    # names #
    #########

    def register_names(self, key: str, names: Sequence[str]) -> None:
        """Store a vector of names under key. The caller ensures the length matches the axis."""
        self._store.write_vector(key, np.bytes_, names)

    def register_names_from_word_file(
        self, key: str, name_file: str, name_columns: Iterable[int], separator: str
    ) -> None:
        """Store one name per line of name_file.

        Each name joins, with separator, the words of the line at positions
        name_columns; positions past the end of a line are skipped.
        """
        name_columns = list(name_columns)
        names = [
            separator.join(words[i] for i in name_columns if i < len(words))
            for words in asap_io.read_lines_of_words(name_file)
        ]
        self.register_names(key, names)

    def names(self, key: str) -> list[str]:
        return self._store.read_strings(key)

    def register_row_names(self, names: Sequence[str]) -> None:
        self.register_names(h5_constants.H5_ROW_NAMES_KEY, names)

    def register_column_names(self, names: Sequence[str]) -> None:
        self.register_names(h5_constants.H5_COLUMN_NAMES_KEY, names)

    def register_row_names_file(self, row_name_file: str) -> None:
        self.register_names_from_word_file(
            h5_constants.H5_ROW_NAMES_KEY,
            row_name_file,
            range(self.config.max_row_name_idx),
            self.config.row_name_sep,
        )

    def register_column_names_file(self, column_name_file: str) -> None:
        self.register_names_from_word_file(
            h5_constants.H5_COLUMN_NAMES_KEY,
            column_name_file,
            range(self.config.max_column_name_idx),
            self.config.column_name_sep,
        )

    def has_row_names(self) -> bool:
        return self._store.has_key(h5_constants.H5_ROW_NAMES_KEY)

    def has_column_names(self) -> bool:
        return self._store.has_key(h5_constants.H5_COLUMN_NAMES_KEY)

    def row_names(self) -> list[str]:
        return self.names(h5_constants.H5_ROW_NAMES_KEY)

    def column_names(self) -> list[str]:
        return self.names(h5_constants.H5_COLUMN_NAMES_KEY)

    ##############
    # dense data #
    ##############

    def write_dense_array(self, key: str, array, dtype=np.float32) -> None:
        self._store.write_dense(key, dtype, array)

    def read_dense_array(self, key: str) -> np.ndarray:
        return self._store.read_dense(key)

    ##########
    # export #
    ##########

    def export_to_mtx(self, mtx_file: str) -> None:
        """Write the whole matrix as a coordinate file, column by column. This will take time.

        Raises:
            IncompleteMetadataError: the shape was never recorded.
            NotIndexedError: the CSC orientation was never built.
        """
        shape = self._require_shape()
        indptr = self._indptr(by_row=False)
        assert len(indptr) == shape.ncol + 1

        group = h5_constants.H5_BY_COLUMN_GROUP
        data_key = _group_key(group, h5_constants.H5_MATRIX_DATA_ATTR)
        indices_key = _group_key(group, h5_constants.H5_MATRIX_INDICES_ATTR)

        self._log("exporting %s to %s", self.backend_file, mtx_file)
        with asap_io.open_maybe_gzip(mtx_file, "w") as stream:
            asap_mtx.write_mtx_header(stream, shape)
            for jj in range(shape.ncol):
                start, end = int(indptr[jj]), int(indptr[jj + 1])
                if start == end:
                    continue
                values = self._store.read_range(data_key, start, end)
                rows = self._store.read_range(indices_key, start, end)
                asap_mtx.write_mtx_entries(stream, rows, jj, values)


def open_sparse_matrix(
    backend_file: str, config: BackendConfig | None = None
) -> SparseMatrixBackend:
    """Open an existing backend read-only."""
    return SparseMatrixBackend.open(backend_file, config=config)
