[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ultrart"
version = "0.1.0"
description = "Runtime pieces for statically recompiled N64 programs: overlay management, RSP data memory and an RSP vector unit model"
requires-python = ">=3.10"
dependencies = []
keywords = ["n64", "emulation", "recompilation", "rsp", "overlays", "vector-unit"]
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
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ultrart"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
