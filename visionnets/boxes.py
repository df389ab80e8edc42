"""Bounding boxes, intersection over union and non-maximum suppression."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass
class BoundingBox:
    """An axis-aligned box in corner form with its class confidence."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float
    confidence: float


def iou(b1: BoundingBox, b2: BoundingBox) -> float:
    """Intersection over union of two boxes, counting edges as whole pixels."""
    b1_area = (b1.xmax - b1.xmin + 1.0) * (b1.ymax - b1.ymin + 1.0)
    b2_area = (b2.xmax - b2.xmin + 1.0) * (b2.ymax - b2.ymin + 1.0)
    i_xmin = max(b1.xmin, b2.xmin)
    i_xmax = min(b1.xmax, b2.xmax)
    i_ymin = max(b1.ymin, b2.ymin)
    i_ymax = min(b1.ymax, b2.ymax)
    i_area = max(i_xmax - i_xmin + 1.0, 0.0) * max(i_ymax - i_ymin + 1.0, 0.0)
    union = b1_area + b2_area - i_area
    if union == 0:
        return math.nan if i_area == 0 else math.copysign(math.inf, i_area)
    return i_area / union


def non_maximum_suppression(bboxes: list[list[BoundingBox]], threshold: float) -> None:
    """Suppress overlapping boxes of each class in place.

    Each class list is sorted by decreasing confidence; a box is dropped when its
    IoU with an already kept box exceeds ``threshold``.
    """
    for boxes in bboxes:
        boxes.sort(key=lambda box: box.confidence, reverse=True)
        kept: list[BoundingBox] = []
        for box in boxes:
            if not any(iou(previous, box) > threshold for previous in kept):
                kept.append(box)
        boxes[:] = kept


def nms(boxes, scores, iou_threshold: float, score_threshold: float) -> list[list[list[BoundingBox]]]:
    """Filter detections per batch item and class.

    ``boxes`` has shape ``[batch, num_boxes, 4]`` in ``(cx, cy, w, h)`` form and
    ``scores`` has shape ``[batch, num_boxes, num_classes]``. Each box is assigned
    to its highest-scoring class and kept when that score reaches
    ``score_threshold``; overlapping boxes are then suppressed. The result is
    indexed ``[batch][class]`` with boxes in decreasing order of confidence.
    """
    boxes = np.asarray(boxes, dtype=np.float32)
    scores = np.asarray(scores, dtype=np.float32)
    if boxes.ndim != 3 or boxes.shape[2] != 4:
        raise ValueError(f"boxes must have shape [batch, num_boxes, 4], got {boxes.shape}")
    if scores.ndim != 3 or scores.shape[:2] != boxes.shape[:2]:
        raise ValueError(
            f"scores shape {scores.shape} does not match boxes shape {boxes.shape}"
        )
    num_classes = scores.shape[2]
    if num_classes == 0:
        raise ValueError("scores must have at least one class")

    threshold = np.float32(score_threshold)
    result = []
    for batch_boxes, batch_scores in zip(boxes, scores):
        cls_idx = batch_scores.argmax(axis=1)
        cls_score = batch_scores.max(axis=1)
        half = batch_boxes[:, 2:] / np.float32(2.0)
        mins = batch_boxes[:, :2] - half
        maxs = batch_boxes[:, :2] + half

        per_class: list[list[BoundingBox]] = [[] for _ in range(num_classes)]
        for i in np.flatnonzero(cls_score >= threshold):
            per_class[int(cls_idx[i])].append(
                BoundingBox(
                    xmin=float(mins[i, 0]),
                    ymin=float(mins[i, 1]),
                    xmax=float(maxs[i, 0]),
                    ymax=float(maxs[i, 1]),
                    confidence=float(cls_score[i]),
                )
            )
        non_maximum_suppression(per_class, iou_threshold)
        result.append(per_class)
    return result