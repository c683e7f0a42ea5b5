[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "netfence"
version = "0.1.0"
description = "Firewall rule manager for nftables backed by SQLite, with a command line and a terminal UI"
requires-python = ">=3.10"
keywords = ["firewall", "nftables", "sqlite", "tui", "netfilter", "audit"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Firewalls",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
netfence = "netfence.cli:main"

[tool.setuptools.packages.find]
include = ["netfence*"]

[tool.pytest.ini_options]
addopts = "-ra"
