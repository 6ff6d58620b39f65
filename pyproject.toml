[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nemudiff"
version = "0.1.0"
description = "Differential-testing parts for an instruction-set emulator: bit helpers, instruction pattern decoding, guest memory, a GDB remote-protocol client that drives QEMU, and a Kconfig-style macro preprocessor."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "emulator",
    "difftest",
    "gdb",
    "remote-protocol",
    "qemu",
    "riscv",
    "kconfig",
    "instruction-decoding",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Debuggers",
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nemudiff"]

[tool.hatch.build.targets.sdist]
include = ["nemudiff", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
