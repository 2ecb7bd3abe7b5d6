[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvsim"
version = "0.1.0"
description = "A simulated teaching kernel: buddy allocator, buffer cache, logging file system, pipes, processes and devices"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "simulation", "file system", "buddy allocator", "operating systems", "education"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["xvsim"]

[tool.pytest.ini_options]
addopts = "-ra"
