[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "raylum"
version = "0.1.0"
description = "Phase-space luminance estimation and ray set interpolation for optical ray sets, built on a 4-D k-d tree"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "optics",
    "ray tracing",
    "ray set",
    "phase space",
    "luminance",
    "etendue",
    "skewness",
    "kd-tree",
    "nearest neighbors",
    "illumination",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["raylum"]

[tool.hatch.build.targets.sdist]
include = ["raylum", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
