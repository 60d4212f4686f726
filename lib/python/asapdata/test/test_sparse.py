#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#
# Unit tests for asapdata.sparse
#

import unittest

import numpy as np
import scipy.sparse as sp_sparse

import asapdata.sparse as asap_sparse
from asapdata.errors import MalformedSourceError


class TestCompress(unittest.TestCase):
    def test_csc(self):
        # 3 x 2: (0,0)=5 (1,0)=7 (2,1)=9, given out of order
        rows = np.array([2, 1, 0])
        cols = np.array([1, 0, 0])
        vals = np.array([9.0, 7.0, 5.0])
        block = asap_sparse.compress_triplets(cols, rows, vals, 2)
        np.testing.assert_array_equal(block.indptr, [0, 2, 3])
        np.testing.assert_array_equal(block.indices, [0, 1, 2])
        np.testing.assert_array_equal(block.data, [5.0, 7.0, 9.0])
        self.assertEqual(block.data.dtype, np.float32)
        self.assertEqual(block.indices.dtype, np.uint64)
        self.assertEqual(block.indptr.dtype, np.uint64)
        asap_sparse.validate_block(block, 3)

    def test_empty_primary(self):
        block = asap_sparse.compress_triplets(np.array([0, 3]), np.array([1, 1]), [1.0, 2.0], 5)
        np.testing.assert_array_equal(block.indptr, [0, 1, 1, 1, 2, 2])

    def test_no_entries(self):
        block = asap_sparse.compress_triplets(np.array([]), np.array([]), [], 3)
        np.testing.assert_array_equal(block.indptr, [0, 0, 0, 0])
        self.assertEqual(len(block.data), 0)
        asap_sparse.validate_block(block, 4)

    def test_stable_duplicates(self):
        block = asap_sparse.compress_triplets(
            np.array([0, 0, 0]), np.array([1, 1, 0]), [1.0, 2.0, 3.0], 1
        )
        np.testing.assert_array_equal(block.indices, [0, 1, 1])
        np.testing.assert_array_equal(block.data, [3.0, 1.0, 2.0])

    def test_validate_rejects_bad_index(self):
        block = asap_sparse.compress_triplets(np.array([0]), np.array([5]), [1.0], 1)
        with self.assertRaises(AssertionError):
            asap_sparse.validate_block(block, 3)


class TestDense(unittest.TestCase):
    def test_nonzero(self):
        arr = np.array([[0, 1.5], [2, 0]])
        rows, cols, vals = asap_sparse.dense_to_triplets(arr)
        np.testing.assert_array_equal(rows, [0, 1])
        np.testing.assert_array_equal(cols, [1, 0])
        np.testing.assert_array_equal(vals, [1.5, 2.0])

    def test_threshold(self):
        arr = np.array([[0.1, -3.0], [0.5, 2.0]])
        rows, cols, vals = asap_sparse.dense_to_triplets(arr, threshold=0.5)
        np.testing.assert_array_equal(rows, [0, 1])
        np.testing.assert_array_equal(cols, [1, 1])
        np.testing.assert_array_equal(vals, [-3.0, 2.0])

    def test_not_2d(self):
        with self.assertRaises(MalformedSourceError):
            asap_sparse.dense_to_triplets(np.zeros(3))

    def test_scipy(self):
        m = sp_sparse.csr_matrix(np.array([[0, 1], [4, 0]]))
        rows, cols, vals = asap_sparse.scipy_to_triplets(m)
        self.assertEqual(sorted(zip(rows.tolist(), cols.tolist(), vals.tolist())), [(0, 1, 1.0), (1, 0, 4.0)])


class TestTriplets(unittest.TestCase):
    def test_conversions(self):
        t = asap_sparse.Triplets(
            3,
            2,
            np.array([0, 2]),
            np.array([1, 0]),
            np.array([1.0, 2.0], dtype=np.float32),
            np.array([4, 7]),
        )
        self.assertEqual(len(t), 2)
        self.assertEqual(t.tolist(), [(0, 1, 1.0), (2, 0, 2.0)])
        np.testing.assert_array_equal(t.toarray(), [[0, 1], [0, 0], [2, 0]])
        self.assertEqual(t.tocsc().format, "csc")
        self.assertEqual(t.tocsr().format, "csr")

    def test_identity_comparison(self):
        def make():
            return asap_sparse.Triplets(
                1, 1, np.array([0]), np.array([0]), np.array([1.0]), np.array([0])
            )

        t = make()
        self.assertEqual(t, t)
        self.assertNotEqual(t, make())
