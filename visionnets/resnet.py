"""ResNet image classifiers (18, 34, 50, 101 and 152 layers)."""

from __future__ import annotations

import numpy as np

from .checkpoint import RESNET_KEY_RULES, load_state_dict_file
from .layers import (
    AdaptiveAvgPool2d,
    BatchNorm2d,
    Conv2d,
    KaimingNormal,
    Linear,
    MaxPool2d,
    Module,
    relu,
)
from .resnet_blocks import LayerBlock
from .weights import ResNet18, ResNet34, ResNet50, ResNet101, ResNet152

RESNET18_BLOCKS = (2, 2, 2, 2)
RESNET34_BLOCKS = (3, 4, 6, 3)
RESNET50_BLOCKS = (3, 4, 6, 3)
RESNET101_BLOCKS = (3, 4, 23, 3)
RESNET152_BLOCKS = (3, 8, 36, 3)


class ResNet(Module):
    """ResNet from "Deep Residual Learning for Image Recognition"."""

    def __init__(self, blocks, num_classes, expansion=1, rng=None):
        if expansion not in (1, 4):
            raise ValueError(
                "ResNet module only supports expansion values [1, 4] for residual blocks"
            )
        blocks = tuple(blocks)
        if len(blocks) != 4:
            raise ValueError(f"expected 4 residual layer sizes, got {len(blocks)}")

        gen = np.random.default_rng(rng)
        bottleneck = expansion > 1
        self.conv1 = Conv2d(
            3,
            64,
            7,
            stride=2,
            padding=3,
            bias=False,
            initializer=KaimingNormal(gain=float(np.sqrt(2.0)), fan_out_only=True),
            rng=gen,
        )
        self.bn1 = BatchNorm2d(64)
        self.maxpool = MaxPool2d(3, stride=2, padding=1)
        self.layer1 = LayerBlock(blocks[0], 64, 64 * expansion, 1, bottleneck, gen)
        self.layer2 = LayerBlock(blocks[1], 64 * expansion, 128 * expansion, 2, bottleneck, gen)
        self.layer3 = LayerBlock(blocks[2], 128 * expansion, 256 * expansion, 2, bottleneck, gen)
        self.layer4 = LayerBlock(blocks[3], 256 * expansion, 512 * expansion, 2, bottleneck, gen)
        self.avgpool = AdaptiveAvgPool2d(1)
        self.fc = Linear(512 * expansion, num_classes, rng=gen)

    def forward(self, x):
        out = relu(self.bn1(self.conv1(x)))
        out = self.maxpool(out)
        out = self.layer1(out)
        out = self.layer2(out)
        out = self.layer3(out)
        out = self.layer4(out)
        out = self.avgpool(out)
        return self.fc(out.reshape(out.shape[0], -1))

    def with_classes(self, num_classes):
        """Replace the output layer with a fresh one for ``num_classes`` classes; return self."""
        self.fc = Linear(self.fc.in_features, num_classes)
        return self

    @classmethod
    def resnet18(cls, num_classes, rng=None):
        """ResNet-18."""
        return cls(RESNET18_BLOCKS, num_classes, 1, rng)

    @classmethod
    def resnet34(cls, num_classes, rng=None):
        """ResNet-34."""
        return cls(RESNET34_BLOCKS, num_classes, 1, rng)

    @classmethod
    def resnet50(cls, num_classes, rng=None):
        """ResNet-50."""
        return cls(RESNET50_BLOCKS, num_classes, 4, rng)

    @classmethod
    def resnet101(cls, num_classes, rng=None):
        """ResNet-101."""
        return cls(RESNET101_BLOCKS, num_classes, 4, rng)

    @classmethod
    def resnet152(cls, num_classes, rng=None):
        """ResNet-152."""
        return cls(RESNET152_BLOCKS, num_classes, 4, rng)

    @classmethod
    def _pretrained(cls, factory, weights, expected, cache_dir):
        if not isinstance(weights, expected):
            raise TypeError(f"expected {expected.__name__} weights, got {weights!r}")
        meta = weights.weights()
        path = meta.download(cache_dir)
        state = load_state_dict_file(path, RESNET_KEY_RULES)
        state = {k: v for k, v in state.items() if not k.endswith(".num_batches_tracked")}
        model = factory(meta.num_classes)
        model.load_state_dict(state)
        return model

    @classmethod
    def resnet18_pretrained(cls, weights=ResNet18.IMAGENET1K_V1, cache_dir=None):
        """ResNet-18 with downloaded pre-trained weights."""
        return cls._pretrained(cls.resnet18, weights, ResNet18, cache_dir)

    @classmethod
    def resnet34_pretrained(cls, weights=ResNet34.IMAGENET1K_V1, cache_dir=None):
        """ResNet-34 with downloaded pre-trained weights."""
        return cls._pretrained(cls.resnet34, weights, ResNet34, cache_dir)

    @classmethod
    def resnet50_pretrained(cls, weights=ResNet50.IMAGENET1K_V1, cache_dir=None):
        """ResNet-50 with downloaded pre-trained weights."""
        return cls._pretrained(cls.resnet50, weights, ResNet50, cache_dir)

    @classmethod
    def resnet101_pretrained(cls, weights=ResNet101.IMAGENET1K_V1, cache_dir=None):
        """ResNet-101 with downloaded pre-trained weights."""
        return cls._pretrained(cls.resnet101, weights, ResNet101, cache_dir)

    @classmethod
    def resnet152_pretrained(cls, weights=ResNet152.IMAGENET1K_V1, cache_dir=None):
        """ResNet-152 with downloaded pre-trained weights."""
        return cls._pretrained(cls.resnet152, weights, ResNet152, cache_dir)