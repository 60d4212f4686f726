#!/usr/bin/env python3
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Tool for converting coordinate-list (Matrix Market) files to and from
chunked HDF5 sparse matrix backends.

Usage:
    asap-data import <mtx_file> [<backend_file>] [--by-row] [--row-names=FILE] [--column-names=FILE]
    asap-data export <backend_file> <mtx_file>
    asap-data info <backend_file>
    asap-data -h | --help | --version

Arguments:
    mtx_file            Coordinate-list file (.mtx, optionally .gz or .lz4).
    backend_file        HDF5 backend file. Defaults to <mtx_file>.h5 on import.

Options:
    --by-row            Also index the matrix by row (CSR).
    --row-names=FILE    File with one row name per line.
    --column-names=FILE
                        File with one column name per line.
    -h --help           Show this message.
    --version           Show version.
"""

from __future__ import annotations

import logging
import os
import sys

import docopt

import asapdata
from asapdata.errors import SparseBackendError
from asapdata.matrix import SparseMatrixBackend


def _parse_args(argv=None):
    return docopt.docopt(__doc__, argv=argv, version=f"asap-data {asapdata.__version__}")


def _import(args):
    mtx_file = args["<mtx_file>"]
    if not os.path.exists(mtx_file):
        sys.exit(f"Input file does not exist: {mtx_file}")

    backend = SparseMatrixBackend.from_mtx_file(
        mtx_file, backend_file=args["<backend_file>"], index_by_row=args["--by-row"]
    )
    with backend:
        if args["--row-names"]:
            backend.register_row_names_file(args["--row-names"])
        if args["--column-names"]:
            backend.register_column_names_file(args["--column-names"])
        logging.info("wrote %s", backend.backend_file)


def _export(args):
    with SparseMatrixBackend.open(args["<backend_file>"]) as backend:
        backend.export_to_mtx(args["<mtx_file>"])
    logging.info("wrote %s", args["<mtx_file>"])


def _info(args):
    with SparseMatrixBackend.open(args["<backend_file>"]) as backend:
        shape = backend.shape()
        print(f"#rows: {shape.nrow}, #columns: {shape.ncol}, #non-zeros: {shape.nnz}")
        print(f"indexed by column: {backend.has_column_index()}")
        print(f"indexed by row: {backend.has_row_index()}")
        print(backend.hierarchy())


def main(argv=None):
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        if args["import"]:
            _import(args)
        elif args["export"]:
            _export(args)
        elif args["info"]:
            _info(args)
    except SparseBackendError as e:
        sys.exit(f"{type(e).__name__}: {e}")


if __name__ == "__main__":
    main()
