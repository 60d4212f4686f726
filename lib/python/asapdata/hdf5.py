#
# Copyright (c) 2024 10X Genomics, Inc. All rights reserved.
#

"""Key-addressed chunked array store on top of HDF5 (h5py).

A StoreHandle wraps a single h5py.File. Arrays are written once, in full,
with a chunk shape chosen by BackendConfig and a lossless compression
filter; they are read back either whole or by half-open element range.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from html import escape, unescape

import h5py
import numpy as np
from six import ensure_str

from asapdata.config import DEFAULT_CONFIG, BackendConfig
from asapdata.errors import StoreError, StoreUnavailableError

STR_DTYPE_CHAR = np.dtype(np.bytes_).char


def is_hdf5(filename, throw_exception=False):
    """A wrapper around h5py.is_hdf5, optionally can throw an exception.

    Args:
        filename: The name of the file to test
        throw_exception: Should we raise an error if not?

    Returns:
        bool as to whether the file is valid
    """
    valid = os.path.isfile(filename) and h5py.is_hdf5(filename)
    if not valid and throw_exception:
        raise StoreUnavailableError(f"File: {filename} is not a valid HDF5 file.")
    return valid


def decode_ascii_xml(x: str | bytes) -> str:
    """Decode a string from 7-bit ASCII + XML into unicode."""
    if isinstance(x, str):
        return x
    elif isinstance(x, bytes):
        return unescape(x.decode())
    else:
        raise ValueError(f"Expected string type, got type {type(x)!s}")


def encode_ascii_xml(x: str | bytes):
    """Encode a string as 7-bit ASCII with XML-encoding.

    for characters outside of 7-bit ASCII and for XML markup characters.
    """
    if isinstance(x, str):
        return escape(x, quote=False).encode("ascii", "xmlcharrefreplace")
    elif isinstance(x, bytes):
        return x
    else:
        raise ValueError(f"Expected string type, got type {type(x)!s}")


def encode_ascii_xml_array(
    data: np.ndarray | Iterable[str | bytes],
) -> np.ndarray:
    """Encode an array-like container of strings as fixed-length 7-bit ASCII.

    with XML-encoding for characters outside of 7-bit ASCII.
    """
    if (
        isinstance(data, np.ndarray)
        and data.dtype.char == STR_DTYPE_CHAR
        and data.dtype.itemsize > 0
    ):
        return data

    def convert(s):
        return encode_ascii_xml(s) if s is not None else b""

    ascii_data = [convert(x) for x in data]

    fixed_len = max((len(s) for s in ascii_data), default=1)
    # h5py doesn't support strings with zero-length-dtype
    fixed_len = max(1, fixed_len)
    dtype = np.dtype((np.bytes_, fixed_len))

    return np.array(ascii_data, dtype=dtype)


def _fill_value(dtype: np.dtype):
    """Value assumed for elements never written."""
    if dtype.kind == "f":
        return np.nan
    elif dtype.kind in "ui":
        return 0
    elif dtype.kind in "SU":
        return b""
    return None


class StoreHandle:
    """A shared handle on one HDF5 backend file.

    The handle does no locking of its own. Readers may share it freely once
    every write has finished.
    """

    def __init__(self, h5_file: h5py.File, config: BackendConfig = DEFAULT_CONFIG):
        self.file = h5_file
        self.config = config

    @classmethod
    def create(cls, filename: str, config: BackendConfig = DEFAULT_CONFIG) -> StoreHandle:
        """Create a new, empty store, truncating anything at filename."""
        try:
            return cls(h5py.File(filename, "w"), config)
        except OSError as e:
            raise StoreUnavailableError(f"Could not create backend file {filename}: {e}") from e

    @classmethod
    def open(
        cls, filename: str, mode: str = "r", config: BackendConfig = DEFAULT_CONFIG
    ) -> StoreHandle:
        """Open an existing store read-only ("r") or read-write ("r+")."""
        if mode not in ("r", "r+"):
            raise ValueError(f"Unsupported mode for an existing backend: {mode}")
        is_hdf5(filename, throw_exception=True)
        try:
            return cls(h5py.File(filename, mode), config)
        except OSError as e:
            raise StoreUnavailableError(f"Could not open backend file {filename}: {e}") from e

    @property
    def filename(self) -> str:
        return ensure_str(self.file.filename)

    @property
    def is_open(self) -> bool:
        return bool(self.file.id.valid)

    def close(self) -> None:
        if self.is_open:
            self.file.close()

    def has_key(self, key: str) -> bool:
        return key in self.file

    def add_group(self, key: str) -> h5py.Group:
        """Open the group at key, creating it if it does not exist."""
        return self.file.require_group(key)

    ########################
    # attributes at a group
    ########################

    def get_attr(self, name: str, group: str = "/"):
        """Get an attribute of a group, or None if it was never set."""
        if group not in self.file:
            return None
        value = self.file[group].attrs.get(name)
        if isinstance(value, np.generic):
            return value.item()
        return value

    def set_attr(self, name: str, value, group: str = "/") -> None:
        self.file[group].attrs[name] = value

    ##########
    # writing
    ##########

    def _create_array(self, key: str, arr: np.ndarray) -> h5py.Dataset:
        if key in self.file:
            raise StoreError(f"Array already exists at key {key}")

        kwargs = {}
        fill = _fill_value(arr.dtype)
        if fill is not None:
            kwargs["fillvalue"] = np.array(fill, dtype=arr.dtype)
        # Chunking a zero-length axis is not meaningful; store empty arrays contiguously.
        if arr.size > 0:
            kwargs["chunks"] = self.config.chunk_shape(arr.shape)
            kwargs["compression"] = self.config.compression
            kwargs["compression_opts"] = self.config.compression_level

        try:
            return self.file.create_dataset(key, data=arr, **kwargs)
        except (ValueError, TypeError, OSError) as e:
            raise StoreError(f"Could not create array at key {key}: {e}") from e

    def write_vector(self, key: str, dtype, values) -> h5py.Dataset:
        """Write a 1-D array under key in a single call."""
        dtype = np.dtype(dtype)
        if dtype.kind in "SUO":
            arr = encode_ascii_xml_array(values)
        else:
            arr = np.asarray(values, dtype=dtype)
        if arr.ndim != 1:
            raise ValueError(f"Expected a 1-D array for {key}, got shape {arr.shape}")
        return self._create_array(key, arr)

    def write_dense(self, key: str, dtype, values) -> h5py.Dataset:
        """Write a 2-D array under key; chunk shape is chosen per axis."""
        arr = np.asarray(values, dtype=np.dtype(dtype))
        if arr.ndim != 2:
            raise ValueError(f"Expected a 2-D array for {key}, got shape {arr.shape}")
        return self._create_array(key, arr)

    ##########
    # reading
    ##########

    def _dataset(self, key: str) -> h5py.Dataset:
        if key not in self.file:
            raise KeyError(f"No array stored at key {key}")
        return self.file[key]

    def read_vector(self, key: str) -> np.ndarray:
        """Read the full span of a 1-D array."""
        return self._dataset(key)[:]

    def read_range(self, key: str, start: int, end: int) -> np.ndarray:
        """Read elements [start, end) of a 1-D array."""
        return self._dataset(key)[int(start) : int(end)]

    def read_dense(self, key: str) -> np.ndarray:
        return self._dataset(key)[:, :]

    def read_strings(self, key: str) -> list[str]:
        """Read a dataset of strings.

        Args:
            key (str): Dataset key.

        Returns:
            list[unicode]: Strings in the dataset.
        """
        dataset = self._dataset(key)
        # h5py doesn't support loading an empty dataset
        if dataset.shape is None:
            return []
        return [decode_ascii_xml(x) for x in dataset[:]]

    def hierarchy(self) -> str:
        """Render every group and array in the store as an indented tree."""
        lines = ["/"]

        def visit(name, node):
            depth = name.count("/")
            label = name.rsplit("/", 1)[-1]
            if isinstance(node, h5py.Dataset):
                label = f"{label} {node.dtype} {node.shape}"
            lines.append("    " * depth + "├── " + label)

        self.file.visititems(visit)
        return "\n".join(lines)
