[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polangir"
version = "0.1.0"
description = "Typed intermediate representation for the Polang language with Hindley-Milner type inference and monomorphization passes"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "type-inference", "hindley-milner", "monomorphization", "ir"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polangir"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
