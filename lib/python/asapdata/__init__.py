#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Chunked, compressed HDF5 storage for large sparse feature x cell matrices."""

__version__ = "0.1.0"
