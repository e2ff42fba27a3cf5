[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zeighty"
version = "0.1.0"
description = "A Z80 CPU emulator core with an instruction exerciser runner"
requires-python = ">=3.10"
dependencies = []
keywords = ["z80", "emulator", "cpu", "zexdoc", "zexall"]
classifiers = [
    "Development Status :: 4 - Beta",
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

[project.scripts]
zeighty-zex = "zeighty.zex:main"

[tool.hatch.build.targets.wheel]
packages = ["zeighty"]

[tool.pytest.ini_options]
addopts = "-ra"
