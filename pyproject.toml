[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "visionnets"
version = "0.1.0"
description = "ResNet classifiers and YOLOX detection building blocks in plain NumPy, with pre-trained weight loading and box post-processing"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "resnet",
    "yolox",
    "object-detection",
    "image-classification",
    "non-maximum-suppression",
    "numpy",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["visionnets"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
