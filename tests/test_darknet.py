import numpy as np
import pytest

from visionnets.bottleneck import SppBottleneck
from visionnets.darknet import CspBlock, CspDarknet
from visionnets.yolox_blocks import BaseConv, DwsConv, expand


def _input(shape, seed=0):
    return np.random.default_rng(seed).normal(size=shape).astype(np.float32)


@pytest.fixture(scope="module")
def nano():
    return CspDarknet(0.33, 0.25, True, rng=0)


def test_invalid_depth_raises():
    with pytest.raises(ValueError):
        CspDarknet(0.5, 0.25, False, rng=0)


def test_invalid_width_raises():
    with pytest.raises(ValueError):
        CspDarknet(0.33, 0.3, False, rng=0)


def test_csp_block_without_spp():
    block = CspBlock(4, 8, 1, False, False, rng=0)
    assert block.spp is None
    assert isinstance(block.conv, BaseConv)
    assert all(b.shortcut for b in block.c3.m)
    assert block(_input((1, 4, 8, 8))).shape == (1, 8, 4, 4)


def test_csp_block_with_spp():
    block = CspBlock(4, 8, 2, True, True, rng=0)
    assert isinstance(block.spp, SppBottleneck)
    assert isinstance(block.conv, DwsConv)
    assert not any(b.shortcut for b in block.c3.m)
    assert len(block.c3.m) == 2
    assert block(_input((1, 4, 6, 6))).shape == (1, 8, 3, 3)


def test_darknet_structure(nano):
    assert nano.dark5.spp is not None
    assert all(stage.spp is None for stage in (nano.dark2, nano.dark3, nano.dark4))
    assert len(nano.dark3.c3.m) == 3 * len(nano.dark2.c3.m)
    assert len(nano.dark4.c3.m) == len(nano.dark3.c3.m)
    assert len(nano.dark5.c3.m) == len(nano.dark2.c3.m)
    assert isinstance(nano.dark2.conv, DwsConv)


def test_darknet_base_depth_rounding():
    large = CspDarknet(1.0, 0.25, False, rng=0)
    assert len(large.dark2.c3.m) == 3
    assert len(large.dark3.c3.m) == 9


def test_darknet_state_keys(nano):
    keys = set(nano.state_dict())
    assert "stem.conv.conv.weight" in keys
    assert "dark5.spp.conv1.conv.weight" in keys
    assert "dark2.c3.m.0.conv1.bn.running_mean" in keys
    assert "dark3.conv.dconv.conv.weight" in keys


def test_darknet_stem_channels(nano):
    weight = nano.state_dict()["stem.conv.conv.weight"]
    assert weight.shape[0] == expand(64, 0.25)
    assert weight.shape[1] == 3 * 4


def test_darknet_forward_feature_pyramid(nano):
    f1, f2, f3 = nano(_input((1, 3, 32, 32)))
    base = expand(64, 0.25)
    assert f1.shape[1] == base * 4
    assert f2.shape[1] == 2 * f1.shape[1]
    assert f3.shape[1] == 2 * f2.shape[1]
    assert f1.shape[2:] == (32 // 8, 32 // 8)
    assert f2.shape[2:] == (32 // 16, 32 // 16)
    assert f3.shape[2:] == (32 // 32, 32 // 32)
    assert all(np.isfinite(f).all() for f in (f1, f2, f3))


def test_darknet_deterministic_with_seed():
    x = _input((1, 3, 16, 16))
    a = CspDarknet(0.33, 0.25, False, rng=3)(x)
    b = CspDarknet(0.33, 0.25, False, rng=3)(x)
    for left, right in zip(a, b):
        np.testing.assert_array_equal(left, right)