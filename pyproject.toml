[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "toyc"
version = "0.5.0"
description = "Compiler front end for the Toy tensor language: lexer, parser, AST dump, IR generation, shape inference and simple optimizations"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "toy", "tensor", "ir", "shape-inference", "parser"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
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

[project.scripts]
toyc = "toyc.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["toyc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
