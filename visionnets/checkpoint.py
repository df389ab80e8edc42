"""Reading PyTorch checkpoint archives into NumPy state dictionaries."""

from __future__ import annotations

import pickle
import re
import zipfile
from collections import OrderedDict
from pathlib import Path
from typing import Iterable, Mapping

import numpy as np

RESNET_KEY_RULES: tuple[tuple[str, str], ...] = (
    (r"(.+)\.downsample\.0\.(.+)", r"\1.downsample.conv.\2"),
    (r"(.+)\.downsample\.1\.(.+)", r"\1.downsample.bn.\2"),
    (r"(layer[1-4])\.([0-9]+)\.(.+)", r"\1.blocks.\2.\3"),
)

YOLOX_KEY_RULES: tuple[tuple[str, str], ...] = (
    (r"backbone\.C3_(.+)", r"backbone.c3_\1"),
    (r"(backbone\.backbone\.dark[2-5])\.0\.(.+)", r"\1.conv.\2"),
    (r"(backbone\.backbone\.dark[2-4])\.1\.(.+)", r"\1.c3.\2"),
    (r"(backbone\.backbone\.dark5)\.1\.(.+)", r"\1.spp.\2"),
    (r"(backbone\.backbone\.dark5)\.2\.(.+)", r"\1.c3.\2"),
    (r"(head\.(cls|reg)_convs\.[0-9]+)\.([0-9]+)\.(.+)", r"\1.conv\3.\4"),
)

_STORAGE_DTYPES = {
    "FloatStorage": np.dtype(np.float32),
    "DoubleStorage": np.dtype(np.float64),
    "HalfStorage": np.dtype(np.float16),
    "BFloat16Storage": np.dtype(np.uint16),
    "LongStorage": np.dtype(np.int64),
    "IntStorage": np.dtype(np.int32),
    "ShortStorage": np.dtype(np.int16),
    "CharStorage": np.dtype(np.int8),
    "ByteStorage": np.dtype(np.uint8),
    "BoolStorage": np.dtype(np.bool_),
}


class _StorageType:
    def __init__(self, name: str):
        self.name = name
        self.dtype = _STORAGE_DTYPES[name]


class _Storage:
    def __init__(self, data: np.ndarray, bfloat16: bool):
        self.data = data
        self.bfloat16 = bfloat16


def _rebuild_tensor(storage: _Storage, offset, size, stride, *_rest) -> np.ndarray:
    data = storage.data
    itemsize = data.dtype.itemsize
    tensor = np.lib.stride_tricks.as_strided(
        data[offset:],
        shape=tuple(size),
        strides=tuple(s * itemsize for s in stride),
    ).copy()
    if storage.bfloat16:
        tensor = (tensor.astype(np.uint32) << 16).view(np.float32)
    return tensor.astype(tensor.dtype.newbyteorder("="), copy=False)


def _rebuild_parameter(data, *_rest) -> np.ndarray:
    if not isinstance(data, np.ndarray):
        raise pickle.UnpicklingError(f"parameter holds {type(data).__name__}, not a tensor")
    return np.ascontiguousarray(data)


class _CheckpointUnpickler(pickle.Unpickler):
    _GLOBALS = {
        ("collections", "OrderedDict"): OrderedDict,
        ("torch._utils", "_rebuild_tensor_v2"): _rebuild_tensor,
        ("torch._utils", "_rebuild_tensor"): _rebuild_tensor,
        ("torch._utils", "_rebuild_parameter"): _rebuild_parameter,
    }

    def __init__(self, file, archive: zipfile.ZipFile, prefix: str, byteorder: str):
        super().__init__(file)
        self._archive = archive
        self._prefix = prefix
        self._byteorder = byteorder
        self._storages: dict[str, _Storage] = {}

    def find_class(self, module, name):
        if (module, name) in self._GLOBALS:
            return self._GLOBALS[module, name]
        if module == "torch" and name in _STORAGE_DTYPES:
            return _StorageType(name)
        raise pickle.UnpicklingError(f"unsupported global {module}.{name} in checkpoint")

    def persistent_load(self, pid):
        if not isinstance(pid, tuple) or not pid or pid[0] != "storage":
            raise pickle.UnpicklingError(f"unsupported persistent id {pid!r}")
        _, storage_type, key, _location, _numel = pid
        if not isinstance(storage_type, _StorageType):
            raise pickle.UnpicklingError(f"unsupported storage type {storage_type!r}")
        key = str(key)
        if key not in self._storages:
            raw = self._archive.read(f"{self._prefix}data/{key}")
            dtype = storage_type.dtype.newbyteorder(self._byteorder)
            self._storages[key] = _Storage(
                np.frombuffer(raw, dtype=dtype), storage_type.name == "BFloat16Storage"
            )
        return self._storages[key]


def load_torch_checkpoint(path):
    """Load a zip-format ``.pth`` file; tensors become NumPy arrays."""
    path = Path(path)
    if not zipfile.is_zipfile(path):
        raise ValueError(f"{path} is not a zip-format checkpoint")
    with zipfile.ZipFile(path) as archive:
        pickles = [n for n in archive.namelist() if n.endswith("data.pkl")]
        if not pickles:
            raise ValueError(f"{path} holds no data.pkl record")
        record = min(pickles, key=len)
        prefix = record[: -len("data.pkl")]
        byteorder = "<"
        if f"{prefix}byteorder" in archive.namelist():
            if archive.read(f"{prefix}byteorder").strip() == b"big":
                byteorder = ">"
        with archive.open(record) as stream:
            return _CheckpointUnpickler(stream, archive, prefix, byteorder).load()


def remap_keys(state: Mapping[str, object], rules: Iterable[tuple[str, str]]) -> dict:
    """Rename keys by applying each ``(pattern, replacement)`` rule in turn.

    Replacements use Python ``re`` syntax; two keys renamed alike raise ``ValueError``.
    """
    compiled = [(re.compile(pattern), replacement) for pattern, replacement in rules]
    renamed: dict = {}
    for key, value in state.items():
        new_key = key
        for pattern, replacement in compiled:
            if pattern.search(new_key):
                new_key = pattern.sub(replacement, new_key)
        if new_key in renamed:
            raise ValueError(f"key {key!r} remaps onto existing key {new_key!r}")
        renamed[new_key] = value
    return renamed


def load_state_dict_file(path, rules=(), top_level_key=None) -> dict[str, np.ndarray]:
    """Load a checkpoint's tensors as a flat state dictionary with remapped keys."""
    state = load_torch_checkpoint(path)
    if top_level_key is not None:
        if not isinstance(state, Mapping) or top_level_key not in state:
            raise KeyError(f"checkpoint has no top-level key {top_level_key!r}")
        state = state[top_level_key]
    if not isinstance(state, Mapping):
        raise ValueError("checkpoint does not hold a state dictionary")
    for key, value in state.items():
        if not isinstance(value, np.ndarray):
            raise ValueError(f"entry {key!r} is not a tensor")
    return remap_keys(state, rules)