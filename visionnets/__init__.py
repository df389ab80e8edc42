"""ResNet classifiers, YOLOX building blocks and detection post-processing in NumPy."""

__version__ = "0.1.0"