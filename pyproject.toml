[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polarkern"
version = "0.1.0"
description = "Kernel core facilities modelled in Python: events, timers, file descriptors, pipes, UNIX sockets, a small network stack, a scheduler and ELF parsing"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "scheduler", "pipes", "unix-sockets", "networking", "elf", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polarkern"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
