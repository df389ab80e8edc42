"""Core neural-network layers and activations on NumPy arrays in NCHW layout.

All layers run in inference mode. Parameters are stored as float32 arrays using
the same names and shapes as PyTorch checkpoints, so state dictionaries load
without transposition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Mapping

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

DTYPE = np.float32


def _pair(value) -> tuple[int, int]:
    if isinstance(value, (int, np.integer)):
        return int(value), int(value)
    first, second = value
    return int(first), int(second)


def _as_input(x, ndim: int = 4) -> np.ndarray:
    array = np.asarray(x, dtype=DTYPE)
    if array.ndim != ndim:
        raise ValueError(f"expected a {ndim}-D input, got shape {array.shape}")
    return array


class Module:
    """Base class for layers: collects array attributes into a state dictionary.

    Array attributes are state; attributes holding modules, or lists of modules,
    are walked recursively with dotted names (``layer.blocks.0.conv.weight``).
    """

    def __call__(self, *args):
        return self.forward(*args)

    def _slots(self, prefix: str = "") -> Iterator[tuple[str, "Module", str]]:
        for name, value in vars(self).items():
            key = f"{prefix}{name}"
            if isinstance(value, np.ndarray):
                yield key, self, name
            elif isinstance(value, Module):
                yield from value._slots(f"{key}.")
            elif isinstance(value, (list, tuple)):
                for index, item in enumerate(value):
                    if isinstance(item, Module):
                        yield from item._slots(f"{key}.{index}.")

    def state_dict(self) -> dict[str, np.ndarray]:
        """Return every parameter and buffer keyed by its dotted name."""
        return {key: getattr(owner, attr) for key, owner, attr in self._slots()}

    def load_state_dict(self, state: Mapping[str, np.ndarray], strict: bool = True):
        """Copy arrays from ``state`` into this module and return the module.

        With ``strict`` set, missing or unexpected keys raise ``KeyError``.
        A shape mismatch always raises ``ValueError``; nothing is changed then.
        """
        slots = {key: (owner, attr) for key, owner, attr in self._slots()}
        if strict:
            missing = sorted(slots.keys() - state.keys())
            unexpected = sorted(state.keys() - slots.keys())
            if missing or unexpected:
                raise KeyError(
                    f"state mismatch: missing keys {missing}, unexpected keys {unexpected}"
                )

        updates = []
        for key, value in state.items():
            if key not in slots:
                continue
            owner, attr = slots[key]
            current = getattr(owner, attr)
            array = np.array(value, dtype=current.dtype, copy=True)
            if array.shape != current.shape:
                raise ValueError(
                    f"shape mismatch for {key}: expected {current.shape}, got {array.shape}"
                )
            updates.append((owner, attr, array))

        for owner, attr, array in updates:
            setattr(owner, attr, array)
        return self


@dataclass(frozen=True)
class KaimingNormal:
    """Normal initializer with standard deviation ``gain / sqrt(fan)``."""

    gain: float = math.sqrt(2.0)
    fan_out_only: bool = True

    def sample(self, shape, fan_in, fan_out, rng=None) -> np.ndarray:
        fan = fan_out if self.fan_out_only else fan_in
        std = self.gain / math.sqrt(fan)
        return np.random.default_rng(rng).normal(0.0, std, size=shape).astype(DTYPE)


@dataclass(frozen=True)
class Constant:
    """Initializer filling every element with ``value``."""

    value: float

    def sample(self, shape, fan_in, fan_out, rng=None) -> np.ndarray:
        return np.full(shape, self.value, dtype=DTYPE)


@dataclass(frozen=True)
class _KaimingUniform:
    gain: float = 1.0 / math.sqrt(3.0)
    fan_out_only: bool = False

    def sample(self, shape, fan_in, fan_out, rng=None) -> np.ndarray:
        fan = fan_out if self.fan_out_only else fan_in
        bound = self.gain * math.sqrt(3.0 / fan)
        return np.random.default_rng(rng).uniform(-bound, bound, size=shape).astype(DTYPE)


class Conv2d(Module):
    """2-D convolution with optional grouping and zero padding."""

    def __init__(
        self,
        in_channels,
        out_channels,
        kernel_size,
        stride=1,
        padding=0,
        groups=1,
        bias=True,
        initializer=None,
        rng=None,
    ):
        if groups < 1 or in_channels % groups or out_channels % groups:
            raise ValueError(
                f"groups={groups} must divide in_channels={in_channels} "
                f"and out_channels={out_channels}"
            )
        self.in_channels = in_channels
        self.out_channels = out_channels
        self.kernel_size = _pair(kernel_size)
        self.stride = _pair(stride)
        self.padding = _pair(padding)
        self.groups = groups

        init = initializer if initializer is not None else _KaimingUniform()
        kh, kw = self.kernel_size
        fan_in = in_channels // groups * kh * kw
        fan_out = out_channels // groups * kh * kw
        gen = np.random.default_rng(rng)
        self.weight = init.sample((out_channels, in_channels // groups, kh, kw), fan_in, fan_out, gen)
        self.bias = init.sample((out_channels,), fan_in, fan_out, gen) if bias else None

    def forward(self, x):
        x = _as_input(x)
        if x.shape[1] != self.in_channels:
            raise ValueError(f"expected {self.in_channels} input channels, got {x.shape[1]}")
        kh, kw = self.kernel_size
        sh, sw = self.stride
        ph, pw = self.padding

        padded = np.pad(x, ((0, 0), (0, 0), (ph, ph), (pw, pw)))
        windows = sliding_window_view(padded, (kh, kw), axis=(2, 3))[:, :, ::sh, ::sw]
        batch, _, out_h, out_w = windows.shape[:4]

        g = self.groups
        windows = windows.reshape(batch, g, self.in_channels // g, out_h, out_w, kh, kw)
        weight = self.weight.reshape(g, self.out_channels // g, self.in_channels // g, kh, kw)
        out = np.einsum("bgchwij,gocij->bgohw", windows, weight, optimize=True)
        out = out.reshape(batch, self.out_channels, out_h, out_w)
        if self.bias is not None:
            out = out + self.bias[None, :, None, None]
        return out.astype(DTYPE, copy=False)


class BatchNorm2d(Module):
    """Batch normalization over channels, using running statistics."""

    def __init__(self, num_features, epsilon=1e-5, momentum=0.1):
        self.num_features = num_features
        self.epsilon = epsilon
        self.momentum = momentum
        self.weight = np.ones(num_features, dtype=DTYPE)
        self.bias = np.zeros(num_features, dtype=DTYPE)
        self.running_mean = np.zeros(num_features, dtype=DTYPE)
        self.running_var = np.ones(num_features, dtype=DTYPE)

    def forward(self, x):
        x = _as_input(x)
        if x.shape[1] != self.num_features:
            raise ValueError(f"expected {self.num_features} channels, got {x.shape[1]}")
        scale = self.weight / np.sqrt(self.running_var + DTYPE(self.epsilon))
        shift = self.bias - self.running_mean * scale
        return (x * scale[None, :, None, None] + shift[None, :, None, None]).astype(DTYPE)


class MaxPool2d(Module):
    """2-D max pooling; the stride defaults to 1."""

    def __init__(self, kernel_size, stride=1, padding=0):
        self.kernel_size = _pair(kernel_size)
        self.stride = _pair(stride)
        self.padding = _pair(padding)

    def forward(self, x):
        x = _as_input(x)
        kh, kw = self.kernel_size
        sh, sw = self.stride
        ph, pw = self.padding
        padded = np.pad(
            x, ((0, 0), (0, 0), (ph, ph), (pw, pw)), constant_values=-np.inf
        )
        windows = sliding_window_view(padded, (kh, kw), axis=(2, 3))[:, :, ::sh, ::sw]
        return windows.max(axis=(4, 5))


def _adaptive_bounds(size: int, out: int) -> list[tuple[int, int]]:
    return [((i * size) // out, -((-(i + 1) * size) // out)) for i in range(out)]


class AdaptiveAvgPool2d(Module):
    """Average pooling to a fixed output size."""

    def __init__(self, output_size):
        self.output_size = _pair(output_size)

    def forward(self, x):
        x = _as_input(x)
        out_h, out_w = self.output_size
        rows = _adaptive_bounds(x.shape[2], out_h)
        cols = _adaptive_bounds(x.shape[3], out_w)
        pooled = np.stack(
            [
                np.stack([x[:, :, r0:r1, c0:c1].mean(axis=(2, 3)) for c0, c1 in cols], axis=-1)
                for r0, r1 in rows
            ],
            axis=-2,
        )
        return pooled.astype(DTYPE)


class Linear(Module):
    """Fully connected layer; ``weight`` has shape ``[out_features, in_features]``."""

    def __init__(self, in_features, out_features, rng=None):
        self.in_features = in_features
        self.out_features = out_features
        init = _KaimingUniform()
        gen = np.random.default_rng(rng)
        self.weight = init.sample((out_features, in_features), in_features, out_features, gen)
        self.bias = init.sample((out_features,), in_features, out_features, gen)

    def forward(self, x):
        x = np.asarray(x, dtype=DTYPE)
        return (x @ self.weight.T + self.bias).astype(DTYPE)


def relu(x):
    """Rectified linear unit."""
    return np.maximum(x, 0)


def sigmoid(x):
    """Logistic sigmoid, stable for large magnitudes."""
    x = np.asarray(x, dtype=DTYPE)
    return np.exp(-np.logaddexp(DTYPE(0), -x))


def silu(x):
    """Sigmoid-weighted linear unit, ``x * sigmoid(x)``."""
    x = np.asarray(x, dtype=DTYPE)
    return x * sigmoid(x)


def upsample_nearest(x, scale):
    """Nearest-neighbour upsampling of the two spatial axes by an integer factor."""
    if scale < 1:
        raise ValueError(f"scale must be at least 1, got {scale}")
    x = _as_input(x)
    return np.repeat(np.repeat(x, scale, axis=2), scale, axis=3)