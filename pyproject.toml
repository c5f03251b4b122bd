[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "edgerag"
version = "0.1.0"
description = "Offline retrieval-augmented generation from the command line, with local embeddings and an Ollama LLM"
requires-python = ">=3.10"
keywords = ["rag", "retrieval", "embeddings", "ollama", "llm", "vector-search", "chunking", "offline"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Indexing",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "requests>=2.28",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
edgerag = "edgerag.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["edgerag"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
