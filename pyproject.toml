[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kver"
version = "0.1.0"
description = "A library for installing and selecting Python, Node.js and Ruby versions side by side"
requires-python = ">=3.10"
dependencies = []
keywords = ["version-manager", "toolchain", "python", "nodejs", "ruby"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
