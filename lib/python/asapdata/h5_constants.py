#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

GZIP_SUFFIX = b".gz"
LZ4_SUFFIX = b".lz4"

BACKEND_SUFFIX = ".h5"

H5_COMPRESSION = "gzip"
H5_COMPRESSION_LEVEL = 3

# Target number of chunks per stored vector, and the smallest chunk allowed.
H5_NUM_CHUNKS = 1000
H5_MIN_CHUNK_SIZE = 1000

H5_NROW_ATTR = "nrow"
H5_NCOL_ATTR = "ncol"
H5_NNZ_ATTR = "nnz"
H5_SHAPE_ATTRS = (H5_NROW_ATTR, H5_NCOL_ATTR, H5_NNZ_ATTR)

H5_BY_COLUMN_GROUP = "/by_column"
H5_BY_ROW_GROUP = "/by_row"

H5_MATRIX_DATA_ATTR = "data"
H5_MATRIX_INDICES_ATTR = "indices"
H5_MATRIX_INDPTR_ATTR = "indptr"
H5_MATRIX_ATTRS = {
    H5_MATRIX_DATA_ATTR: "float32",
    H5_MATRIX_INDICES_ATTR: "uint64",
    H5_MATRIX_INDPTR_ATTR: "uint64",
}

H5_ROW_NAMES_KEY = "/row_names"
H5_COLUMN_NAMES_KEY = "/column_names"

MTX_HEADER = "%%MatrixMarket matrix coordinate real general"
MTX_COMMENT_CHAR = "%"

# Name files: how many leading words of each line form a name, and how they are joined.
MAX_ROW_NAME_IDX = 5
MAX_COLUMN_NAME_IDX = 5
ROW_NAME_SEP = "_"
COLUMN_NAME_SEP = "@"
