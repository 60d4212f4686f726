#!/usr/bin/env python
#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#
# Unit tests for asapdata.hdf5
#

import numpy as np

import asapdata.hdf5 as asap_h5
from asapdata.config import BackendConfig
from asapdata.errors import StoreError, StoreUnavailableError
from asapdata.test import TempDirTestCase


class TestStoreHandle(TempDirTestCase):
    def setUp(self):
        super().setUp()
        self.store = asap_h5.StoreHandle.create(self.out_path("store.h5"))

    def tearDown(self):
        self.store.close()
        super().tearDown()

    def test_open_missing(self):
        with self.assertRaises(StoreUnavailableError):
            asap_h5.StoreHandle.open(self.out_path("missing.h5"))

    def test_open_not_hdf5(self):
        fn = self.out_path("not.h5")
        with open(fn, "w") as f:
            f.write("hello\n")
        with self.assertRaises(StoreUnavailableError):
            asap_h5.StoreHandle.open(fn)

    def test_create_in_missing_dir(self):
        with self.assertRaises(StoreUnavailableError):
            asap_h5.StoreHandle.create(self.out_path("no/such/dir/store.h5"))

    def test_write_vector_float(self):
        values = np.arange(5000, dtype=np.float32)
        ds = self.store.write_vector("/v", "float32", values)
        self.assertEqual(ds.dtype, np.float32)
        self.assertEqual(ds.chunks, (1000,))
        self.assertEqual(ds.compression, "gzip")
        self.assertEqual(ds.compression_opts, 3)
        self.assertTrue(np.isnan(ds.fillvalue))
        np.testing.assert_array_equal(self.store.read_vector("/v"), values)
        np.testing.assert_array_equal(self.store.read_range("/v", 10, 20), values[10:20])

    def test_write_vector_uint(self):
        ds = self.store.write_vector("/u", "uint64", [3, 1, 2])
        self.assertEqual(ds.dtype, np.uint64)
        self.assertEqual(ds.fillvalue, 0)
        self.assertEqual(ds.chunks, (3,))
        self.assertEqual(self.store.read_range("/u", 1, 1).size, 0)

    def test_write_empty_vector(self):
        self.store.write_vector("/e", "float32", [])
        self.assertEqual(len(self.store.read_vector("/e")), 0)

    def test_strings(self):
        names = ["a", "", "café", "gene_1"]
        ds = self.store.write_vector("/names", np.bytes_, names)
        self.assertEqual(ds.fillvalue, b"")
        self.assertEqual(self.store.read_strings("/names"), names)

    def test_existing_key(self):
        self.store.write_vector("/v", "float32", [1.0])
        with self.assertRaises(StoreError):
            self.store.write_vector("/v", "float32", [2.0])

    def test_missing_key(self):
        with self.assertRaises(KeyError):
            self.store.read_vector("/nothing")

    def test_dense(self):
        dense = np.arange(3 * 2500, dtype=np.float32).reshape((3, 2500))
        ds = self.store.write_dense("/dense", "float32", dense)
        self.assertEqual(ds.chunks, (3, 1000))
        np.testing.assert_array_equal(self.store.read_dense("/dense"), dense)
        with self.assertRaises(ValueError):
            self.store.write_dense("/flat", "float32", [1.0, 2.0])

    def test_configured_chunks(self):
        store = asap_h5.StoreHandle.create(
            self.out_path("small.h5"), BackendConfig(num_chunks=4, min_chunk_size=2)
        )
        ds = store.write_vector("/v", "uint64", np.arange(100))
        self.assertEqual(ds.chunks, (25,))
        store.close()

    def test_attrs_and_groups(self):
        self.assertIsNone(self.store.get_attr("nrow"))
        self.store.set_attr("nrow", 7)
        self.assertEqual(self.store.get_attr("nrow"), 7)
        self.assertIsInstance(self.store.get_attr("nrow"), int)

        self.store.add_group("/by_column")
        self.store.add_group("/by_column")
        self.assertTrue(self.store.has_key("/by_column"))
        self.store.write_vector("/by_column/data", "float32", [1.0])
        tree = self.store.hierarchy()
        self.assertIn("by_column", tree)
        self.assertIn("data float32 (1,)", tree)

    def test_reopen(self):
        fn = self.store.filename
        self.store.write_vector("/v", "float32", [1.0, 2.0])
        self.store.close()
        self.assertFalse(self.store.is_open)

        self.store = asap_h5.StoreHandle.open(fn)
        np.testing.assert_array_equal(self.store.read_vector("/v"), [1.0, 2.0])
        with self.assertRaises(ValueError):
            asap_h5.StoreHandle.open(fn, mode="w")


class TestAsciiXml(TempDirTestCase):
    def test_encode_decode(self):
        self.assertEqual(asap_h5.encode_ascii_xml("café"), b"caf&#233;")
        self.assertEqual(asap_h5.decode_ascii_xml(b"caf&#233;"), "café")
        self.assertEqual(asap_h5.decode_ascii_xml("x"), "x")
        self.assertEqual(asap_h5.encode_ascii_xml("a&b<c"), b"a&amp;b&lt;c")
        for name in ["a&b", "&amp;", "&lt;gene&gt;", "é&#233;"]:
            self.assertEqual(asap_h5.decode_ascii_xml(asap_h5.encode_ascii_xml(name)), name)
        with self.assertRaises(ValueError):
            asap_h5.encode_ascii_xml(1)

    def test_encode_array(self):
        arr = asap_h5.encode_ascii_xml_array(["ab", None, "c"])
        self.assertEqual(arr.dtype, np.dtype("S2"))
        self.assertEqual(list(arr), [b"ab", b"", b"c"])
        self.assertEqual(asap_h5.encode_ascii_xml_array([]).dtype, np.dtype("S1"))
