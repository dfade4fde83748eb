[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vitacma"
version = "0.5.1"
description = "Content manager assistant for the PS Vita: media catalogue, SFO reading, backup listing and settings"
requires-python = ">=3.10"
dependencies = [
    "platformdirs",
]
keywords = ["ps vita", "content manager", "backup", "sfo", "media catalogue", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
vitacma = "vitacma.app:main"

[tool.hatch.build.targets.wheel]
packages = ["vitacma"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
