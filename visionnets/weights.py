"""Pre-trained weight descriptors and a cached downloader."""

from __future__ import annotations

import os
import shutil
import tempfile
import urllib.request
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

_IMAGENET_CLASSES = 1000
_COCO_CLASSES = 80


@dataclass(frozen=True)
class Weights:
    """Location and class count of a pre-trained weights file."""

    url: str
    num_classes: int
    cache_name: str = "visionnets"

    def file_name(self) -> str:
        """Return the last path segment of the URL."""
        _, sep, name = self.url.rpartition("/")
        if not sep or not name:
            raise ValueError(f"cannot derive a file name from URL {self.url!r}")
        return name

    def _default_cache_dir(self) -> Path:
        return Path.home() / ".cache" / "visionnets" / self.cache_name

    def download(self, cache_dir=None) -> Path:
        """Download the weights into ``cache_dir`` unless already there; return the path.

        Without ``cache_dir`` the file goes to ``~/.cache/visionnets/<cache_name>``.
        """
        directory = Path(cache_dir) if cache_dir is not None else self._default_cache_dir()
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.file_name()
        if target.exists():
            return target

        handle, temp_name = tempfile.mkstemp(dir=directory, prefix=".download-")
        try:
            with os.fdopen(handle, "wb") as output, urllib.request.urlopen(self.url) as response:
                shutil.copyfileobj(response, output)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        return target


def _resnet_weights(url: str) -> Weights:
    return Weights(url=url, num_classes=_IMAGENET_CLASSES, cache_name="resnet")


def _yolox_weights(url: str) -> Weights:
    return Weights(url=url, num_classes=_COCO_CLASSES, cache_name="yolox")


class ResNet18(Enum):
    """ResNet-18 weights. V1: top-1 69.758%, top-5 89.078%."""

    IMAGENET1K_V1 = "https://download.pytorch.org/models/resnet18-f37072fd.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _resnet_weights(self.value)


class ResNet34(Enum):
    """ResNet-34 weights. V1: top-1 73.314%, top-5 91.420%."""

    IMAGENET1K_V1 = "https://download.pytorch.org/models/resnet34-b627a593.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _resnet_weights(self.value)


class ResNet50(Enum):
    """ResNet-50 weights. V1: top-1 76.130%; V2: top-1 80.858%."""

    IMAGENET1K_V1 = "https://download.pytorch.org/models/resnet50-0676ba61.pth"
    IMAGENET1K_V2 = "https://download.pytorch.org/models/resnet50-11ad3fa6.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _resnet_weights(self.value)


class ResNet101(Enum):
    """ResNet-101 weights. V1: top-1 77.374%; V2: top-1 81.886%."""

    IMAGENET1K_V1 = "https://download.pytorch.org/models/resnet101-63fe2227.pth"
    IMAGENET1K_V2 = "https://download.pytorch.org/models/resnet101-cd907fc2.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _resnet_weights(self.value)


class ResNet152(Enum):
    """ResNet-152 weights. V1: top-1 78.312%; V2: top-1 82.284%."""

    IMAGENET1K_V1 = "https://download.pytorch.org/models/resnet152-394f9c45.pth"
    IMAGENET1K_V2 = "https://download.pytorch.org/models/resnet152-f82ba261.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _resnet_weights(self.value)


_YOLOX_RELEASE = "https://github.com/Megvii-BaseDetection/YOLOX/releases/download/0.1.1rc0"


class YoloxNano(Enum):
    """YOLOX-Nano COCO weights, mAP (val2017) 25.8."""

    COCO = f"{_YOLOX_RELEASE}/yolox_nano.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)


class YoloxTiny(Enum):
    """YOLOX-Tiny COCO weights, mAP (val2017) 32.8."""

    COCO = f"{_YOLOX_RELEASE}/yolox_tiny.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)


class YoloxS(Enum):
    """YOLOX-S COCO weights, mAP (test2017) 40.5."""

    COCO = f"{_YOLOX_RELEASE}/yolox_s.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)


class YoloxM(Enum):
    """YOLOX-M COCO weights, mAP (test2017) 47.2."""

    COCO = f"{_YOLOX_RELEASE}/yolox_m.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)


class YoloxL(Enum):
    """YOLOX-L COCO weights, mAP (test2017) 50.1."""

    COCO = f"{_YOLOX_RELEASE}/yolox_l.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)


class YoloxX(Enum):
    """YOLOX-X COCO weights, mAP (test2017) 51.5."""

    COCO = f"{_YOLOX_RELEASE}/yolox_x.pth"

    def weights(self) -> Weights:
        """Return the weights descriptor for this variant."""
        return _yolox_weights(self.value)