"""Bottleneck blocks for YOLOX: standard, spatial pyramid pooling and CSP variants."""

from __future__ import annotations

import numpy as np

from .layers import MaxPool2d, Module
from .yolox_blocks import BaseConv, expand, make_conv

SPP_POOLING = (5, 9, 13)


class Bottleneck(Module):
    """A 1x1 base convolution followed by a 3x3 convolution, with an optional shortcut."""

    def __init__(self, in_channels, out_channels, shortcut=True, depthwise=False, rng=None):
        gen = np.random.default_rng(rng)
        hidden_channels = out_channels
        self.conv1 = BaseConv(in_channels, hidden_channels, 1, 1, 1, gen)
        self.conv2 = make_conv(hidden_channels, out_channels, 3, 1, depthwise, gen)
        self.shortcut = shortcut

    def forward(self, x):
        out = self.conv2(self.conv1(x))
        if self.shortcut:
            out = out + np.asarray(x, dtype=np.float32)
        return out


class SppBottleneck(Module):
    """Spatial pyramid pooling: max pools of several sizes concatenated with their input."""

    def __init__(self, in_channels, out_channels, rng=None):
        gen = np.random.default_rng(rng)
        hidden_channels = in_channels // 2
        self.conv1 = BaseConv(in_channels, hidden_channels, 1, 1, 1, gen)
        self.conv2 = BaseConv(hidden_channels * (len(SPP_POOLING) + 1), out_channels, 1, 1, 1, gen)
        self.m = [MaxPool2d(k, stride=1, padding=k // 2) for k in SPP_POOLING]

    def forward(self, x):
        if not self.m:
            raise ValueError("No MaxPool2d modules found")
        x = self.conv1(x)
        pooled = [x] + [pool(x) for pool in self.m]
        return self.conv2(np.concatenate(pooled, axis=1))


class CspBottleneck(Module):
    """Cross Stage Partial bottleneck with three convolutions (C3)."""

    def __init__(
        self,
        in_channels,
        out_channels,
        num_blocks=1,
        expansion=0.5,
        shortcut=True,
        depthwise=False,
        rng=None,
    ):
        if not 0.0 < expansion <= 1.0:
            raise ValueError("expansion should be in range (0, 1]")
        gen = np.random.default_rng(rng)
        hidden_channels = expand(out_channels, expansion)
        self.conv1 = BaseConv(in_channels, hidden_channels, 1, 1, 1, gen)
        self.conv2 = BaseConv(in_channels, hidden_channels, 1, 1, 1, gen)
        self.conv3 = BaseConv(2 * hidden_channels, out_channels, 1, 1, 1, gen)
        self.m = [
            Bottleneck(hidden_channels, hidden_channels, shortcut, depthwise, gen)
            for _ in range(num_blocks)
        ]

    def forward(self, x):
        x1 = self.conv1(x)
        x2 = self.conv2(x)
        for block in self.m:
            x1 = block(x1)
        return self.conv3(np.concatenate([x1, x2], axis=1))