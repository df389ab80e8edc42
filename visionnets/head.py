"""Decoupled YOLOX detection head."""

from __future__ import annotations

import math

import numpy as np

from .layers import Constant, Conv2d, Module, sigmoid
from .yolox_blocks import BaseConv, ConvBlock, expand

STRIDES = (8, 16, 32)
IN_CHANNELS = (256, 512, 1024)
PRIOR_PROB = 1e-2
_HIDDEN_CHANNELS = 256


def create_2d_grid(x, y):
    """Return an integer grid of shape ``[y, x, 2]`` holding ``(x, y)`` coordinates."""
    ys, xs = np.indices((y, x), dtype=np.int64)
    return np.stack([xs, ys], axis=2)


class Head(Module):
    """Per-level classification, regression and objectness predictions with box decoding."""

    def __init__(self, num_classes, width, depthwise=False, rng=None):
        gen = np.random.default_rng(rng)
        bias = -math.log((1.0 - PRIOR_PROB) / PRIOR_PROB)
        hidden = expand(_HIDDEN_CHANNELS, width)

        self.stems = []
        self.cls_convs = []
        self.reg_convs = []
        self.cls_preds = []
        self.reg_preds = []
        self.obj_preds = []
        for in_channels in IN_CHANNELS:
            self.stems.append(BaseConv(expand(in_channels, width), hidden, 1, 1, 1, gen))
            self.cls_convs.append(ConvBlock(hidden, 3, 1, depthwise, gen))
            self.reg_convs.append(ConvBlock(hidden, 3, 1, depthwise, gen))
            self.cls_preds.append(
                Conv2d(hidden, num_classes, 1, padding=0, initializer=Constant(bias), rng=gen)
            )
            self.reg_preds.append(Conv2d(hidden, 4, 1, padding=0, rng=gen))
            self.obj_preds.append(
                Conv2d(hidden, 1, 1, padding=0, initializer=Constant(bias), rng=gen)
            )

    def forward(self, features):
        """Predict ``[B, num_anchors, 5 + num_classes]`` decoded detections from three feature maps."""
        features = tuple(features)
        if len(features) != len(STRIDES):
            raise ValueError(f"expected {len(STRIDES)} feature maps, got {len(features)}")

        outputs = []
        shapes = []
        for feat, stem, cls_conv, cls_pred, reg_conv, reg_pred, obj_pred in zip(
            features,
            self.stems,
            self.cls_convs,
            self.cls_preds,
            self.reg_convs,
            self.reg_preds,
            self.obj_preds,
        ):
            feat = stem(feat)
            cls_out = cls_pred(cls_conv(feat))
            reg_feat = reg_conv(feat)
            reg_out = reg_pred(reg_feat)
            obj_out = obj_pred(reg_feat)

            out = np.concatenate([reg_out, sigmoid(obj_out), sigmoid(cls_out)], axis=1)
            batch, channels, h, w = out.shape
            outputs.append(out.reshape(batch, channels, h * w))
            shapes.append((h, w))

        merged = np.concatenate(outputs, axis=2).transpose(0, 2, 1)
        return self.decode(merged, shapes)

    def decode(self, outputs, shapes):
        """Turn grid-relative offsets and log sizes into absolute ``(cx, cy, w, h)`` boxes."""
        outputs = np.asarray(outputs, dtype=np.float32)
        if outputs.ndim != 3 or outputs.shape[2] < 4:
            raise ValueError(f"expected outputs of shape [B, anchors, >=4], got {outputs.shape}")
        shapes = list(shapes)
        if len(shapes) > len(STRIDES):
            raise ValueError(f"at most {len(STRIDES)} levels are supported, got {len(shapes)}")

        grids = []
        strides = []
        for (h, w), stride in zip(shapes, STRIDES):
            grids.append(create_2d_grid(w, h).reshape(h * w, 2))
            strides.append(np.full((h * w, 1), stride, dtype=np.int64))
        grid = np.concatenate(grids, axis=0).astype(np.float32)[None]
        stride = np.concatenate(strides, axis=0).astype(np.float32)[None]
        if grid.shape[1] != outputs.shape[1]:
            raise ValueError(
                f"shapes describe {grid.shape[1]} anchors, outputs have {outputs.shape[1]}"
            )

        centers = (outputs[:, :, :2] + grid) * stride
        sizes = np.exp(outputs[:, :, 2:4]) * stride
        return np.concatenate([centers, sizes, outputs[:, :, 4:]], axis=2).astype(np.float32)