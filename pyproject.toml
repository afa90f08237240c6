[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eraser"
version = "1.1.0"
description = "Find and remove non-running, non-excluded or non-compliant container images on a node through the CRI"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "containers",
    "cri",
    "kubernetes",
    "images",
    "garbage-collection",
    "vulnerability-scanning",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["eraser"]

[tool.hatch.build.targets.sdist]
include = [
    "eraser",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
