"""Image normalization and multi-label target encoding."""

from __future__ import annotations

from typing import Iterable

import numpy as np

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


class Normalizer:
    """Per-channel normalization ``(input - mean) / std`` for ``[B, C, H, W]`` batches.

    The defaults are the ImageNet statistics; inputs are expected in ``[0, 1]``.
    """

    def __init__(self, mean=IMAGENET_MEAN, std=IMAGENET_STD):
        mean_array = np.asarray(mean, dtype=np.float32).ravel()
        std_array = np.asarray(std, dtype=np.float32).ravel()
        if mean_array.shape != std_array.shape:
            raise ValueError(
                f"mean and std must have the same length, got {mean_array.size} and {std_array.size}"
            )
        if np.any(std_array == 0):
            raise ValueError("std must not contain zeros")
        self.mean = mean_array.reshape(1, -1, 1, 1)
        self.std = std_array.reshape(1, -1, 1, 1)

    def normalize(self, images) -> np.ndarray:
        """Normalize a batch of images shaped ``[B, C, H, W]``."""
        images = np.asarray(images, dtype=np.float32)
        if images.ndim != 4:
            raise ValueError(f"expected a 4-D batch, got shape {images.shape}")
        if images.shape[1] != self.mean.shape[1]:
            raise ValueError(
                f"expected {self.mean.shape[1]} channels, got {images.shape[1]}"
            )
        return (images - self.mean) / self.std


def multi_hot(indices: Iterable[int], num_classes: int) -> np.ndarray:
    """Encode class indices as a multi-hot integer vector of length ``num_classes``.

    Repeated indices accumulate, as a scatter-add would.
    """
    index_array = np.asarray(list(indices), dtype=np.int64)
    if index_array.size and (index_array.min() < 0 or index_array.max() >= num_classes):
        raise IndexError(f"class index out of range for {num_classes} classes")
    encoded = np.zeros(num_classes, dtype=np.int64)
    np.add.at(encoded, index_array, 1)
    return encoded