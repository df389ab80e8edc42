import numpy as np
import pytest

from visionnets.resnet import ResNet
from visionnets.resnet_blocks import BasicBlock, Bottleneck
from visionnets.weights import ResNet18, ResNet34


@pytest.fixture(scope="module")
def small_resnet18():
    return ResNet.resnet18(5, rng=0)


def _images(batch=2, size=32, seed=1):
    return np.random.default_rng(seed).random((batch, 3, size, size)).astype(np.float32)


def test_invalid_expansion_raises():
    with pytest.raises(ValueError):
        ResNet((1, 1, 1, 1), 10, expansion=2)


def test_wrong_number_of_layers_raises():
    with pytest.raises(ValueError):
        ResNet((2, 2, 2), 10, expansion=1)


def test_resnet18_forward_shape(small_resnet18):
    out = small_resnet18.forward(_images())
    assert out.shape == (2, 5)
    assert np.isfinite(out).all()


def test_resnet18_state_dict_keys(small_resnet18):
    keys = small_resnet18.state_dict()
    assert "layer1.blocks.0.conv1.weight" in keys
    assert "layer2.blocks.0.downsample.conv.weight" in keys
    assert "layer2.blocks.0.downsample.bn.running_mean" in keys
    assert "fc.weight" in keys and "fc.bias" in keys
    assert "layer1.blocks.0.downsample.conv.weight" not in keys


def test_resnet34_block_counts():
    model = ResNet((3, 4, 6, 3), 3, expansion=1, rng=2)
    counts = [len(layer.blocks) for layer in (model.layer1, model.layer2, model.layer3, model.layer4)]
    assert counts == [3, 4, 6, 3]
    assert all(isinstance(b, BasicBlock) for b in model.layer3.blocks)


def test_resnet50_uses_bottleneck_with_layer1_downsample():
    model = ResNet.resnet50(4, rng=3)
    assert all(isinstance(b, Bottleneck) for b in model.layer1.blocks)
    assert model.layer1.blocks[0].downsample is not None
    assert model.layer1.blocks[1].downsample is None
    assert model.fc.weight.shape[0] == 4
    assert model.forward(_images(batch=1)).shape == (1, 4)


def test_with_classes_replaces_head_only(small_resnet18):
    model = ResNet.resnet18(5, rng=4)
    conv_before = model.conv1.weight.copy()
    in_features = model.fc.in_features
    result = model.with_classes(7)
    assert result is model
    assert model.fc.weight.shape == (7, in_features)
    np.testing.assert_array_equal(model.conv1.weight, conv_before)
    assert model.forward(_images(batch=1)).shape == (1, 7)


def test_state_round_trip_reproduces_output(small_resnet18):
    other = ResNet.resnet18(5, rng=99)
    other.load_state_dict(small_resnet18.state_dict())
    x = _images(batch=1)
    np.testing.assert_allclose(other.forward(x), small_resnet18.forward(x), rtol=1e-5, atol=1e-6)


def test_wrong_input_channels_raise(small_resnet18):
    with pytest.raises(ValueError):
        small_resnet18.forward(np.zeros((1, 1, 32, 32), dtype=np.float32))


def test_pretrained_rejects_wrong_weights_type(tmp_path):
    with pytest.raises(TypeError):
        ResNet.resnet18_pretrained(ResNet34.IMAGENET1K_V1, cache_dir=tmp_path)


def test_pretrained_with_invalid_cached_file_raises(tmp_path):
    meta = ResNet18.IMAGENET1K_V1.weights()
    (tmp_path / meta.file_name()).write_bytes(b"not a checkpoint")
    with pytest.raises(ValueError):
        ResNet.resnet18_pretrained(ResNet18.IMAGENET1K_V1, cache_dir=tmp_path)