"""Convolution building blocks for YOLOX: base, depthwise separable, focus and dual blocks."""

from __future__ import annotations

import math

import numpy as np

from .layers import BatchNorm2d, Conv2d, Module, silu


def expand(num_channels, factor):
    """Scale a channel count by ``factor``, rounding down."""
    return int(math.floor(num_channels * factor))


class BaseConv(Module):
    """Conv2d -> BatchNorm -> SiLU with "same" padding and no convolution bias."""

    def __init__(self, in_channels, out_channels, kernel_size, stride=1, groups=1, rng=None):
        pad = (kernel_size - 1) // 2
        self.conv = Conv2d(
            in_channels,
            out_channels,
            kernel_size,
            stride=stride,
            padding=pad,
            groups=groups,
            bias=False,
            rng=np.random.default_rng(rng),
        )
        self.bn = BatchNorm2d(out_channels, epsilon=1e-3, momentum=0.03)

    def forward(self, x):
        return silu(self.bn(self.conv(x)))


class DwsConv(Module):
    """Depthwise separable convolution: a depthwise then a pointwise base convolution."""

    def __init__(self, in_channels, out_channels, kernel_size, stride=1, rng=None):
        gen = np.random.default_rng(rng)
        self.dconv = BaseConv(in_channels, in_channels, kernel_size, stride, in_channels, gen)
        self.pconv = BaseConv(in_channels, out_channels, 1, 1, 1, gen)

    def forward(self, x):
        return self.pconv(self.dconv(x))


def make_conv(in_channels, out_channels, kernel_size, stride=1, depthwise=False, rng=None):
    """Build a depthwise separable block when ``depthwise`` is set, a base block otherwise."""
    if depthwise:
        return DwsConv(in_channels, out_channels, kernel_size, stride, rng)
    return BaseConv(in_channels, out_channels, kernel_size, stride, 1, rng)


class Focus(Module):
    """Move 2x2 spatial neighbourhoods into channels, then apply a base convolution."""

    def __init__(self, in_channels, out_channels, kernel_size, stride=1, rng=None):
        self.conv = BaseConv(in_channels * 4, out_channels, kernel_size, stride, 1, rng)

    def forward(self, x):
        x = np.asarray(x, dtype=np.float32)
        if x.ndim != 4:
            raise ValueError(f"expected a 4-D input, got shape {x.shape}")
        top_left = x[:, :, ::2, ::2]
        top_right = x[:, :, ::2, 1::2]
        bottom_left = x[:, :, 1::2, ::2]
        bottom_right = x[:, :, 1::2, 1::2]
        stacked = np.concatenate([top_left, bottom_left, top_right, bottom_right], axis=1)
        return self.conv(stacked)


class ConvBlock(Module):
    """Two consecutive convolution blocks with equal input and output channels."""

    def __init__(self, channels, kernel_size, stride=1, depthwise=False, rng=None):
        gen = np.random.default_rng(rng)
        self.conv0 = make_conv(channels, channels, kernel_size, stride, depthwise, gen)
        self.conv1 = make_conv(channels, channels, kernel_size, stride, depthwise, gen)

    def forward(self, x):
        return self.conv1(self.conv0(x))