[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "n64plus"
version = "0.1.0"
description = "Core pieces of a Nintendo 64 emulator: VR4300 instruction execution, disassembly, event scheduling and RDP command queueing"
requires-python = ">=3.10"
dependencies = []
keywords = ["n64", "emulator", "mips", "vr4300", "disassembler", "rdp"]
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
packages = ["n64plus"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
