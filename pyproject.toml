[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hpingkit"
version = "0.1.0"
description = "Build, split and report on TCP/IP probe packets as plain bytes"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "networking",
    "tcp",
    "udp",
    "icmp",
    "packet",
    "probe",
    "checksum",
    "fragmentation",
    "clock-skew",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hpingkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
