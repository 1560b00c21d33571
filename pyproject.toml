[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mediarepo"
version = "0.1.0"
description = "Building blocks for a Matrix media repository: database stores, a file datastore, thumbnail helpers and concurrency utilities."
requires-python = ">=3.10"
keywords = ["matrix", "media", "thumbnails", "mxc", "storage", "exif"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Multimedia :: Graphics",
    "Topic :: Database",
]
dependencies = [
    "charset-normalizer",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mediarepo"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
