[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "phasespace"
version = "0.1.0"
description = "Read and write particle phase-space files in the IAEA binary format"
requires-python = ">=3.10"
dependencies = []
keywords = ["phase space", "IAEA", "Monte Carlo", "radiotherapy", "particle transport"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["phasespace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
