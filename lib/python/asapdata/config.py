#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Settings for a sparse matrix backend.

A BackendConfig is handed to each backend when it is constructed; nothing
in the package reads process-wide state.
"""

from __future__ import annotations

from dataclasses import dataclass

import asapdata.h5_constants as h5_constants


@dataclass(frozen=True)
class BackendConfig:
    """Tuning and behaviour knobs for SparseMatrixBackend.

    Attributes:
        num_chunks: Target number of chunks per stored vector.
        min_chunk_size: Smallest chunk length, in elements.
        compression: HDF5 filter applied to every chunk.
        compression_level: Level passed to the compression filter.
        check_bounds: Raise on out-of-range row/column requests instead of
            skipping them, and validate stored indices on every read.
        verbose: Emit progress messages at INFO rather than DEBUG.
        max_row_name_idx: Number of leading words used for row names
            read from a word file.
        max_column_name_idx: Same, for column names.
        row_name_sep: Separator joining the words of a row name.
        column_name_sep: Separator joining the words of a column name.
    """

    num_chunks: int = h5_constants.H5_NUM_CHUNKS
    min_chunk_size: int = h5_constants.H5_MIN_CHUNK_SIZE
    compression: str = h5_constants.H5_COMPRESSION
    compression_level: int = h5_constants.H5_COMPRESSION_LEVEL
    check_bounds: bool = __debug__
    verbose: bool = False
    max_row_name_idx: int = h5_constants.MAX_ROW_NAME_IDX
    max_column_name_idx: int = h5_constants.MAX_COLUMN_NAME_IDX
    row_name_sep: str = h5_constants.ROW_NAME_SEP
    column_name_sep: str = h5_constants.COLUMN_NAME_SEP

    def __post_init__(self):
        if self.num_chunks < 1:
            raise ValueError(f"num_chunks must be positive, got {self.num_chunks}")
        if self.min_chunk_size < 1:
            raise ValueError(f"min_chunk_size must be positive, got {self.min_chunk_size}")

    def chunk_length(self, num_elements: int) -> int:
        """Chunk length for an axis of the given size.

        Aims for num_chunks chunks, never below min_chunk_size and never
        beyond the axis itself.
        """
        return max(1, min(max(num_elements // self.num_chunks, self.min_chunk_size), num_elements))

    def chunk_shape(self, shape: tuple[int, ...]) -> tuple[int, ...]:
        return tuple(self.chunk_length(n) for n in shape)


DEFAULT_CONFIG = BackendConfig()
