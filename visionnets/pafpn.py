"""Path aggregation feature pyramid network (PAFPN) neck for YOLOX."""

from __future__ import annotations

import math

import numpy as np

from .bottleneck import CspBottleneck
from .darknet import CspDarknet
from .layers import Module, upsample_nearest
from .yolox_blocks import BaseConv, expand, make_conv

_DEPTHS = (0.33, 0.67, 1.0, 1.33)
_WIDTHS = (0.25, 0.375, 0.5, 0.75, 1.0, 1.25)
_IN_CHANNELS = (256, 512, 1024)


class Pafpn(Module):
    """Feature pyramid combining top-down fusion with a bottom-up path over a CSPDarknet backbone."""

    def __init__(self, depth, width, depthwise=False, rng=None):
        if depth not in _DEPTHS:
            raise ValueError(f"invalid depth value {depth}")
        if width not in _WIDTHS:
            raise ValueError(f"invalid width value {width}")
        gen = np.random.default_rng(rng)

        hidden = (expand(2 * _IN_CHANNELS[0], width), expand(2 * _IN_CHANNELS[1], width))
        c0, c1, c2 = (expand(c, width) for c in _IN_CHANNELS)
        num_blocks = int(math.floor(3.0 * depth + 0.5))

        self.backbone = CspDarknet(depth, width, depthwise, gen)
        self.lateral_conv0 = BaseConv(c2, c1, 1, 1, 1, gen)
        self.c3_p4 = CspBottleneck(hidden[1], c1, num_blocks, 0.5, False, depthwise, gen)
        self.reduce_conv1 = BaseConv(c1, c0, 1, 1, 1, gen)
        self.c3_p3 = CspBottleneck(hidden[0], c0, num_blocks, 0.5, False, depthwise, gen)
        self.bu_conv2 = make_conv(c0, c0, 3, 2, depthwise, gen)
        self.c3_n3 = CspBottleneck(hidden[0], c1, num_blocks, 0.5, False, depthwise, gen)
        self.bu_conv1 = make_conv(c1, c1, 3, 2, depthwise, gen)
        self.c3_n4 = CspBottleneck(hidden[1], c2, num_blocks, 0.5, False, depthwise, gen)

    def forward(self, x):
        """Return the fused feature maps at strides 8, 16 and 32."""
        f1, f2, f3 = self.backbone(x)

        fpn_out0 = self.lateral_conv0(f3)
        f_out0 = np.concatenate([upsample_nearest(fpn_out0, 2), f2], axis=1)
        f_out0 = self.c3_p4(f_out0)

        fpn_out1 = self.reduce_conv1(f_out0)
        f_out1 = np.concatenate([upsample_nearest(fpn_out1, 2), f1], axis=1)
        pan_out2 = self.c3_p3(f_out1)

        p_out1 = np.concatenate([self.bu_conv2(pan_out2), fpn_out1], axis=1)
        pan_out1 = self.c3_n3(p_out1)

        p_out0 = np.concatenate([self.bu_conv1(pan_out1), fpn_out0], axis=1)
        pan_out0 = self.c3_n4(p_out0)

        return pan_out2, pan_out1, pan_out0