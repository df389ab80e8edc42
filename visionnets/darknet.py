"""CSPDarknet-53 backbone used by YOLOX."""

from __future__ import annotations

import math

import numpy as np

from .bottleneck import CspBottleneck, SppBottleneck
from .layers import Module
from .yolox_blocks import Focus, expand, make_conv

_DEPTHS = (0.33, 0.67, 1.0, 1.33)
_WIDTHS = (0.25, 0.375, 0.5, 0.75, 1.0, 1.25)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class CspBlock(Module):
    """A strided convolution followed by a CSP bottleneck, with spatial pyramid pooling
    in between for the last stage."""

    def __init__(self, in_channels, out_channels, depth, spp=False, depthwise=False, rng=None):
        gen = np.random.default_rng(rng)
        self.conv = make_conv(in_channels, out_channels, 3, 2, depthwise, gen)
        self.c3 = CspBottleneck(out_channels, out_channels, depth, 0.5, not spp, depthwise, gen)
        self.spp = SppBottleneck(out_channels, out_channels, gen) if spp else None

    def forward(self, x):
        x = self.conv(x)
        if self.spp is not None:
            x = self.spp(x)
        return self.c3(x)


class CspDarknet(Module):
    """CSPDarknet-53 backbone returning feature maps at strides 8, 16 and 32."""

    def __init__(self, depth, width, depthwise=False, rng=None):
        if depth not in _DEPTHS:
            raise ValueError(f"invalid depth value {depth}")
        if width not in _WIDTHS:
            raise ValueError(f"invalid width value {width}")
        gen = np.random.default_rng(rng)
        base_channels = expand(64, width)
        base_depth = max(_round_half_away(depth * 3.0), 1)

        self.stem = Focus(3, base_channels, 3, 1, gen)
        self.dark2 = CspBlock(base_channels, base_channels * 2, base_depth, False, depthwise, gen)
        self.dark3 = CspBlock(
            base_channels * 2, base_channels * 4, base_depth * 3, False, depthwise, gen
        )
        self.dark4 = CspBlock(
            base_channels * 4, base_channels * 8, base_depth * 3, False, depthwise, gen
        )
        self.dark5 = CspBlock(base_channels * 8, base_channels * 16, base_depth, True, depthwise, gen)

    def forward(self, x):
        """Return the three feature maps ``(dark3, dark4, dark5)``."""
        x = self.stem(x)
        x = self.dark2(x)
        f1 = self.dark3(x)
        f2 = self.dark4(f1)
        f3 = self.dark5(f2)
        return f1, f2, f3