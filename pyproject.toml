[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tpmattest"
version = "0.1.0"
description = "TPM attestation helpers: PCR selections, quote evidence collection, TCG event log filtering and AK/EK certificate handling"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "tpm",
    "tpm2",
    "attestation",
    "remote-attestation",
    "pcr",
    "event-log",
    "quote",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tpmattest"]

[tool.hatch.build.targets.sdist]
include = [
    "tpmattest",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
