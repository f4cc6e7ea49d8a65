[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lansync"
version = "1.0.0"
description = "Local-network file synchronisation server and client with UDP discovery"
requires-python = ">=3.10"
dependencies = []
keywords = ["sync", "file synchronisation", "lan", "discovery", "mirroring", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Mirroring",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
lansync = "lansync.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lansync"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
