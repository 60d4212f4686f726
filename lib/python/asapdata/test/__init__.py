#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#
import os.path
import shutil
import tempfile
import unittest

import asapdata.h5_constants as h5_constants


def write_mtx(filename, nrow, ncol, entries, header=h5_constants.MTX_HEADER, comments=()):
    """Write a coordinate file from 1-based (row, col, value) entries."""
    with open(filename, "w") as f:
        f.write(header + "\n")
        for comment in comments:
            f.write("%" + comment + "\n")
        f.write(f"{nrow} {ncol} {len(entries)}\n")
        for r, c, v in entries:
            f.write(f"{r} {c} {v}\n")
    return filename


class TempDirTestCase(unittest.TestCase):
    """Gives each test its own scratch directory."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp(prefix="asapdata_test_")

    def tearDown(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def out_path(self, filename):
        return os.path.join(self.tmp_dir, filename)
