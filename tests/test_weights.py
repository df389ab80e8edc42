import pytest

from visionnets.weights import (
    ResNet18,
    ResNet34,
    ResNet50,
    ResNet101,
    ResNet152,
    Weights,
    YoloxL,
    YoloxM,
    YoloxNano,
    YoloxS,
    YoloxTiny,
    YoloxX,
)


def _all_resnet_weights():
    return [
        ResNet18.IMAGENET1K_V1.weights(),
        ResNet34.IMAGENET1K_V1.weights(),
        ResNet50.IMAGENET1K_V1.weights(),
        ResNet50.IMAGENET1K_V2.weights(),
        ResNet101.IMAGENET1K_V1.weights(),
        ResNet101.IMAGENET1K_V2.weights(),
        ResNet152.IMAGENET1K_V1.weights(),
        ResNet152.IMAGENET1K_V2.weights(),
    ]


def _all_yolox_weights():
    return [
        YoloxNano.COCO.weights(),
        YoloxTiny.COCO.weights(),
        YoloxS.COCO.weights(),
        YoloxM.COCO.weights(),
        YoloxL.COCO.weights(),
        YoloxX.COCO.weights(),
    ]


def test_resnet18_file_name():
    assert ResNet18.IMAGENET1K_V1.weights().file_name() == "resnet18-f37072fd.pth"


def test_yolox_tiny_file_name():
    assert YoloxTiny.COCO.weights().file_name() == "yolox_tiny.pth"


def test_resnet_weights_have_imagenet_classes():
    classes = [
        ResNet18.IMAGENET1K_V1.weights().num_classes,
        ResNet34.IMAGENET1K_V1.weights().num_classes,
        ResNet50.IMAGENET1K_V2.weights().num_classes,
        ResNet101.IMAGENET1K_V1.weights().num_classes,
        ResNet152.IMAGENET1K_V2.weights().num_classes,
    ]
    assert classes == [1000] * 5


def test_yolox_weights_have_coco_classes():
    classes = [
        YoloxNano.COCO.weights().num_classes,
        YoloxTiny.COCO.weights().num_classes,
        YoloxS.COCO.weights().num_classes,
        YoloxM.COCO.weights().num_classes,
        YoloxL.COCO.weights().num_classes,
        YoloxX.COCO.weights().num_classes,
    ]
    assert classes == [80] * 6


def test_all_urls_distinct():
    urls = [w.url for w in _all_resnet_weights() + _all_yolox_weights()]
    assert len(urls) == 14
    assert len(set(urls)) == 14


def test_v2_variants_present():
    assert ResNet50.IMAGENET1K_V2.weights().file_name() == "resnet50-11ad3fa6.pth"
    assert ResNet101.IMAGENET1K_V2.weights().file_name() == "resnet101-cd907fc2.pth"
    assert ResNet152.IMAGENET1K_V2.weights().file_name() == "resnet152-f82ba261.pth"


def test_file_name_without_slash_raises():
    with pytest.raises(ValueError):
        Weights(url="noslash", num_classes=1).file_name()


def test_file_name_with_trailing_slash_raises():
    with pytest.raises(ValueError):
        Weights(url="file:///tmp/dir/", num_classes=1).file_name()


def test_download_copies_into_cache(tmp_path):
    source = tmp_path / "model.pth"
    source.write_bytes(b"weights-bytes")
    weights = Weights(url=source.as_uri(), num_classes=3)
    cache = tmp_path / "cache" / "nested"

    path = weights.download(cache_dir=cache)

    assert path == cache / "model.pth"
    assert path.read_bytes() == b"weights-bytes"


def test_download_uses_cached_file(tmp_path):
    source = tmp_path / "model.pth"
    source.write_bytes(b"first")
    weights = Weights(url=source.as_uri(), num_classes=3)
    cache = tmp_path / "cache"
    first = weights.download(cache_dir=cache)

    source.unlink()
    second = weights.download(cache_dir=cache)

    assert second == first
    assert second.read_bytes() == b"first"


def test_download_missing_source_raises_and_leaves_no_file(tmp_path):
    weights = Weights(url=(tmp_path / "absent.pth").as_uri(), num_classes=1)
    cache = tmp_path / "cache"
    with pytest.raises(OSError):
        weights.download(cache_dir=cache)
    assert list(cache.iterdir()) == []