[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gpioline"
version = "0.1.0"
description = "Linux GPIO character device (uAPI v2) structures, ioctls and an edge event watcher"
requires-python = ">=3.10"
dependencies = []
keywords = ["gpio", "linux", "chardev", "ioctl", "uapi", "edge-detection"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gpioline"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
