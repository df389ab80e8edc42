# visionnets

Convolutional vision models written with NumPy alone. All layers run in
inference mode on `float32` arrays in `[batch, channels, height, width]`
layout.

- **ResNet** classifiers (ResNet-18, 34, 50, 101 and 152) built from basic and
  bottleneck residual blocks, with optional pre-trained ImageNet weights.
- **YOLOX** building blocks: a CSPDarknet backbone, a PAFPN neck and a
  decoupled prediction head that decodes boxes.
- Detection post-processing: intersection over union and per-class
  non-maximum suppression.
- ImageNet-style input normalisation and multi-hot target encoding.
- A reader for zip-format `.pth` checkpoints that yields NumPy state
  dictionaries, with regex-based key renaming.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

| Module | Contents |
| --- | --- |
| `visionnets.layers` | `Module` (with `state_dict` / `load_state_dict`), `Conv2d`, `BatchNorm2d`, `MaxPool2d`, `AdaptiveAvgPool2d`, `Linear`, the `KaimingNormal` and `Constant` initializers, and `relu`, `silu`, `sigmoid`, `upsample_nearest` |
| `visionnets.normalize` | `Normalizer` (ImageNet mean/std by default) and `multi_hot` |
| `visionnets.boxes` | `BoundingBox`, `iou`, `non_maximum_suppression`, `nms` |
| `visionnets.weights` | `Weights` descriptors with a cached `download`, and the enums `ResNet18`, `ResNet34`, `ResNet50`, `ResNet101`, `ResNet152`, `YoloxNano`, `YoloxTiny`, `YoloxS`, `YoloxM`, `YoloxL`, `YoloxX` |
| `visionnets.checkpoint` | `load_torch_checkpoint`, `remap_keys`, `load_state_dict_file`, and the rule sets `RESNET_KEY_RULES` and `YOLOX_KEY_RULES` |
| `visionnets.resnet_blocks` | `Downsample`, `BasicBlock`, `Bottleneck`, `LayerBlock` |
| `visionnets.resnet` | `ResNet` with the `resnet18` ... `resnet152` constructors and their `*_pretrained` variants |
| `visionnets.yolox_blocks` | `expand`, `BaseConv`, `DwsConv`, `make_conv`, `Focus`, `ConvBlock` |
| `visionnets.bottleneck` | `Bottleneck`, `SppBottleneck`, `CspBottleneck` |
| `visionnets.darknet` | `CspBlock`, `CspDarknet` |
| `visionnets.pafpn` | `Pafpn` |
| `visionnets.head` | `create_2d_grid`, `Head` |

## Classifying with ResNet

Randomly initialised models accept a NumPy random generator (or seed) for
reproducible weights.

```python
import numpy as np
from visionnets.resnet import ResNet
from visionnets.normalize import Normalizer

rng = np.random.default_rng(0)
model = ResNet.resnet18(1000, rng)

images = rng.random((1, 3, 224, 224))        # values in [0, 1]
logits = model.forward(Normalizer().normalize(images))
print(logits.shape)                           # (1, 1000)

# Replace the classifier for a new task with 17 classes
model = model.with_classes(17)
```

Pre-trained models take a member of the matching weights enum and an
optional cache directory. The checkpoint is downloaded once (by default into
`~/.cache/visionnets/resnet`), its keys are renamed with `RESNET_KEY_RULES`,
and it is loaded strictly into the model:

```python
from visionnets.resnet import ResNet
from visionnets.weights import ResNet50

model = ResNet.resnet50_pretrained(ResNet50.IMAGENET1K_V2, cache_dir="weights")
```

Passing a member of the wrong enum raises `TypeError`.

## YOLOX components

`Pafpn(depth, width, depthwise, rng)` returns three feature maps at strides
8, 16 and 32, and `Head(num_classes, width, depthwise, rng)` turns them into
decoded detections of shape `[batch, anchors, 5 + num_classes]`: box centre
and size in pixels, objectness, then per-class scores. Depth must be one of
0.33, 0.67, 1.0, 1.33 and width one of 0.25, 0.375, 0.5, 0.75, 1.0, 1.25;
other values raise `ValueError`.

```python
import numpy as np
from visionnets.pafpn import Pafpn
from visionnets.head import Head

rng = np.random.default_rng(0)
neck = Pafpn(0.33, 0.25, True, rng)           # Nano-sized settings
head = Head(80, 0.25, True, rng)

x = rng.random((1, 3, 64, 64)).astype(np.float32)
out = head.forward(neck.forward(x))
print(out.shape)                              # (1, 84, 85)
```

## Post-processing detections

```python
from visionnets.boxes import BoundingBox, iou, nms

boxes = out[:, :, :4]
scores = out[:, :, 5:] * out[:, :, 4:5]
per_batch = nms(boxes, scores, 0.65, 0.5)

for class_index, detections in enumerate(per_batch[0]):
    for b in detections:
        print(class_index, b.confidence, b.xmin, b.ymin, b.xmax, b.ymax)

iou(BoundingBox(0, 0, 9, 9, 0.9), BoundingBox(5, 0, 14, 9, 0.8))  # 1/3
```

`nms` takes boxes in `(cx, cy, w, h)` form, assigns each box to its
highest-scoring class, keeps those whose score reaches the score threshold,
and returns, for each batch item, one list of `BoundingBox` per class sorted
by decreasing confidence. A box is dropped when its IoU with an already kept
box of the same class exceeds the IoU threshold.

## State dictionaries and checkpoints

Every `Module` exposes its arrays under dotted names matching PyTorch
conventions (`layer1.blocks.0.conv1.weight`). `load_state_dict(state,
strict=True)` raises `KeyError` on missing or unexpected keys and
`ValueError` on a shape mismatch.

```python
from visionnets.checkpoint import load_state_dict_file, RESNET_KEY_RULES

state = load_state_dict_file("resnet18-f37072fd.pth", RESNET_KEY_RULES)
```

Only zip-format checkpoints are read, and the unpickler accepts tensors and
ordered dictionaries alone; anything else raises `pickle.UnpicklingError`.

## What this package does not do

- There is no assembled YOLOX detector class and no loader for pre-trained
  YOLOX weights. The YOLOX weight enums, `YOLOX_KEY_RULES` and the
  components above are provided, but combining them into a ready detector is
  left to the caller.
- There is no command-line tool; image decoding, resizing and drawing of
  results are not included.
- There is no training: layers run in inference mode only and no gradients
  are computed.