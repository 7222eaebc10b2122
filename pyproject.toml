[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chunkscope"
version = "0.1.0"
description = "Analyze which 32-byte bytecode chunks Ethereum contracts actually touch during execution"
requires-python = ">=3.10"
keywords = ["ethereum", "evm", "bytecode", "chunking", "trace", "analysis"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Information Analysis",
]
dependencies = [
    "requests",
    "python-dotenv",
    "cachetools",
    "pycryptodome",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
chunkscope = "chunkscope.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["chunkscope"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
