import numpy as np
import pytest

from visionnets.pafpn import Pafpn
from visionnets.yolox_blocks import expand


@pytest.fixture(scope="module")
def nano_outputs():
    model = Pafpn(0.33, 0.25, depthwise=False, rng=0)
    x = np.random.default_rng(1).random((1, 3, 32, 32), dtype=np.float32)
    return model, x, model(x)


def test_output_shapes_follow_channel_widths(nano_outputs):
    _, _, (p3, p4, p5) = nano_outputs
    assert p3.shape == (1, expand(256, 0.25), 4, 4)
    assert p4.shape == (1, expand(512, 0.25), 2, 2)
    assert p5.shape == (1, expand(1024, 0.25), 1, 1)


def test_outputs_are_finite(nano_outputs):
    _, _, outputs = nano_outputs
    assert all(np.isfinite(out).all() for out in outputs)


def test_same_seed_gives_same_result(nano_outputs):
    _, x, outputs = nano_outputs
    again = Pafpn(0.33, 0.25, depthwise=False, rng=0)(x)
    for first, second in zip(outputs, again):
        np.testing.assert_allclose(first, second)


def test_state_dict_round_trip_reproduces_output(nano_outputs):
    model, x, outputs = nano_outputs
    other = Pafpn(0.33, 0.25, depthwise=False, rng=99)
    other.load_state_dict(model.state_dict())
    for first, second in zip(outputs, other(x)):
        np.testing.assert_allclose(first, second, rtol=1e-5, atol=1e-5)


def test_state_dict_uses_checkpoint_names(nano_outputs):
    model, _, _ = nano_outputs
    keys = model.state_dict().keys()
    assert "backbone.dark5.spp.conv1.conv.weight" in keys
    assert "c3_p4.m.0.conv1.conv.weight" in keys
    assert "lateral_conv0.bn.running_var" in keys


def test_depth_controls_bottleneck_count():
    shallow = Pafpn(0.33, 0.25, rng=0)
    deep = Pafpn(1.0, 0.25, rng=0)
    assert len(deep.c3_n4.m) == 3 * len(shallow.c3_n4.m)


def test_depthwise_variant_runs():
    model = Pafpn(0.33, 0.25, depthwise=True, rng=0)
    x = np.zeros((1, 3, 32, 32), dtype=np.float32)
    outputs = model(x)
    assert [o.shape[1] for o in outputs] == [expand(c, 0.25) for c in (256, 512, 1024)]
    assert "bu_conv1.dconv.conv.weight" in model.state_dict()


def test_invalid_depth_raises():
    with pytest.raises(ValueError, match="depth"):
        Pafpn(0.5, 0.25)


def test_invalid_width_raises():
    with pytest.raises(ValueError, match="width"):
        Pafpn(0.33, 0.3)