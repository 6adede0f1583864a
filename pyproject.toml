[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quicflow"
version = "0.1.0"
description = "Transport-layer bookkeeping for QUIC: flow-control limits, pacing, delivery rate, congestion jumpstart, sent-packet tracking and connection IDs"
requires-python = ">=3.10"
keywords = ["quic", "transport", "congestion-control", "pacing", "flow-control", "connection-id"]
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
    "Topic :: Internet",
    "Topic :: System :: Networking",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["quicflow"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
