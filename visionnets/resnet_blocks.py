"""Residual building blocks for ResNet: basic, bottleneck and downsample layers."""

from __future__ import annotations

import numpy as np

from .layers import BatchNorm2d, Conv2d, KaimingNormal, Module, relu

# Recommended gain for ReLU, scaled by fan-out as in the reference implementation.
_CONV_INIT = KaimingNormal(gain=float(np.sqrt(2.0)), fan_out_only=True)


def _conv(in_channels, out_channels, kernel_size, stride, padding, rng) -> Conv2d:
    return Conv2d(
        in_channels,
        out_channels,
        kernel_size,
        stride=stride,
        padding=padding,
        bias=False,
        initializer=_CONV_INIT,
        rng=rng,
    )


class Downsample(Module):
    """A strided 1x1 convolution followed by batch norm, matching the shortcut to the block output."""

    def __init__(self, in_channels, out_channels, stride=1, rng=None):
        gen = np.random.default_rng(rng)
        self.conv = _conv(in_channels, out_channels, 1, stride, 0, gen)
        self.bn = BatchNorm2d(out_channels)

    def forward(self, x):
        return self.bn(self.conv(x))


def _shortcut(in_channels, out_channels, stride, rng) -> Downsample | None:
    if in_channels != out_channels:
        return Downsample(in_channels, out_channels, stride, rng)
    return None


class BasicBlock(Module):
    """Two 3x3 convolutions with a residual connection."""

    def __init__(self, in_channels, out_channels, stride=1, rng=None):
        gen = np.random.default_rng(rng)
        self.conv1 = _conv(in_channels, out_channels, 3, stride, 1, gen)
        self.bn1 = BatchNorm2d(out_channels)
        self.conv2 = _conv(out_channels, out_channels, 3, 1, 1, gen)
        self.bn2 = BatchNorm2d(out_channels)
        self.downsample = _shortcut(in_channels, out_channels, stride, gen)

    def forward(self, x):
        identity = x
        out = relu(self.bn1(self.conv1(x)))
        out = self.bn2(self.conv2(out))
        if self.downsample is not None:
            identity = self.downsample(identity)
        return relu(out + identity)


class Bottleneck(Module):
    """1x1 -> 3x3 -> 1x1 convolutions with expansion 4 and a residual connection.

    The stride sits on the 3x3 convolution (the "V1.5" variant).
    """

    def __init__(self, in_channels, out_channels, stride=1, rng=None):
        gen = np.random.default_rng(rng)
        hidden = out_channels // 4
        self.conv1 = _conv(in_channels, hidden, 1, 1, 0, gen)
        self.bn1 = BatchNorm2d(hidden)
        self.conv2 = _conv(hidden, hidden, 3, stride, 1, gen)
        self.bn2 = BatchNorm2d(hidden)
        self.conv3 = _conv(hidden, out_channels, 1, 1, 0, gen)
        self.bn3 = BatchNorm2d(out_channels)
        self.downsample = _shortcut(in_channels, out_channels, stride, gen)

    def forward(self, x):
        identity = x
        out = relu(self.bn1(self.conv1(x)))
        out = relu(self.bn2(self.conv2(out)))
        out = self.bn3(self.conv3(out))
        if self.downsample is not None:
            identity = self.downsample(identity)
        return relu(out + identity)


class LayerBlock(Module):
    """A sequence of residual blocks; only the first one applies the stride."""

    def __init__(self, num_blocks, in_channels, out_channels, stride=1, bottleneck=False, rng=None):
        gen = np.random.default_rng(rng)
        block_type = Bottleneck if bottleneck else BasicBlock
        self.blocks = [
            block_type(in_channels, out_channels, stride, gen)
            if index == 0
            else block_type(out_channels, out_channels, 1, gen)
            for index in range(num_blocks)
        ]

    def forward(self, x):
        for block in self.blocks:
            x = block(x)
        return x