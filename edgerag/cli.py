"""Command-line interface: index documents and ask questions about them."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

import yaml

from edgerag import embedding as _embedding
from edgerag import llm as _llm
from edgerag.document import Chunk, chunk_document, chunk_smart_document, load_from_file
from edgerag.embedding import EmbeddingError, EmbeddingService
from edgerag.llm import LLMError, OllamaClient
from edgerag.rag import Pipeline
from edgerag.vectorstore import PersistentStore

DEFAULT_EXTENSIONS = (".txt", ".md", ".go", ".py", ".js")
DEFAULT_SETTINGS: dict[str, str] = {
    "model": _embedding.DEFAULT_MODEL,
    "ollama_model": _llm.DEFAULT_MODEL,
    "ollama_url": _llm.DEFAULT_URL,
}
_CONFIG_NAMES = (".edgerag.yaml", ".edgerag.yml")
_RULE = "-" * 80

_ROOT_DESCRIPTION = """\
EdgeRAG is a command-line tool for building and querying a Retrieval-Augmented Generation (RAG) system
that works completely offline. It uses sentence-transformers for embeddings and Ollama for LLM inference."""

_INDEX_DESCRIPTION = """\
Index documents by processing them, generating embeddings, and storing them in the vector database.

Supported file formats: .txt, .md, .go, .py, .js
Chunking strategies: character-based (default) or semantic (--semantic)."""

_QUERY_DESCRIPTION = """\
Query the indexed documents using Retrieval-Augmented Generation (RAG):
embed the question, find the most relevant chunks and let the Ollama model answer."""


class _CommandError(Exception):
    """A command failed; the message is shown to the user."""


def load_config(config_file: str | os.PathLike[str] | None = None) -> dict[str, Any]:
    """Read settings from a YAML config file, by default ``~/.edgerag.yaml``.

    A missing or unreadable file yields no settings. Keys are lower-cased.
    """
    if config_file:
        candidates = [Path(config_file)]
    else:
        home = Path.home()
        candidates = [home / name for name in _CONFIG_NAMES]

    for path in candidates:
        try:
            with open(path, encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError):
            continue
        if data is None:
            data = {}
        if not isinstance(data, dict):
            continue
        print(f"Using config file: {path}", file=sys.stderr)
        return {str(key).lower(): value for key, value in data.items()}
    return {}


def _resolve(key: str, flag_value: str | None, config: dict[str, Any]) -> str:
    """Pick a setting from the flag, then the environment, then the config file."""
    if flag_value is not None:
        return flag_value
    env_value = os.environ.get(key.upper())
    if env_value:
        return env_value
    if key in config and config[key] is not None:
        return str(config[key])
    return DEFAULT_SETTINGS[key]


def _extension(filename: str) -> str:
    name = os.path.basename(filename)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def has_valid_extension(filename: str, extensions: Iterable[str]) -> bool:
    """Tell whether the file's lower-cased extension is one of ``extensions``."""
    return _extension(filename).lower() in set(extensions)


def _walk_files(directory: str) -> Iterator[str]:
    with os.scandir(directory) as entries:
        ordered = sorted(entries, key=lambda entry: entry.name)
    for entry in ordered:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        else:
            yield entry.path


def get_files_to_process(
    path: str | os.PathLike[str], recursive: bool, extensions: Iterable[str]
) -> list[str]:
    """List the files under ``path`` whose extension is wanted, in name order.

    Raises OSError if ``path`` or a directory below it cannot be read.
    """
    path = os.fspath(path)
    wanted = list(extensions)
    if not os.path.isdir(path):
        os.stat(path)
        return [path] if has_valid_extension(path, wanted) else []

    if recursive:
        candidates: Iterable[str] = _walk_files(path)
    else:
        with os.scandir(path) as entries:
            ordered = sorted(entries, key=lambda entry: entry.name)
        candidates = [
            os.path.join(path, entry.name)
            for entry in ordered
            if not entry.is_dir(follow_symlinks=False)
        ]
    return [name for name in candidates if has_valid_extension(name, wanted)]


def truncate_string(s: str, max_len: int) -> str:
    """Cut ``s`` to ``max_len`` characters, marking the cut with ``...``."""
    if len(s) <= max_len:
        return s
    return s[:max_len] + "..."


def _data_dir() -> str:
    return os.path.join(os.environ.get("HOME", ""), ".edgerag", "vectors")


def _open_embedder(args: argparse.Namespace, model: str) -> EmbeddingService:
    try:
        return EmbeddingService(
            model, script_path=args.embedding_script, python=args.python
        )
    except EmbeddingError as err:
        raise _CommandError(f"failed to initialize embedding service: {err}") from err


def _open_store(data_dir: str) -> PersistentStore:
    try:
        return PersistentStore(data_dir)
    except OSError as err:
        raise _CommandError(f"failed to initialize vector store: {err}") from err


def _parse_extensions(values: Sequence[str] | None) -> list[str]:
    if not values:
        return list(DEFAULT_EXTENSIONS)
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _run_index(args: argparse.Namespace, settings: dict[str, str]) -> None:
    extensions = _parse_extensions(args.extensions)
    chunk_size = args.chunk_size
    chunk_overlap = args.chunk_overlap

    model = settings["model"]
    print(f"🧠 Initializing embedding service (model: {model})...")
    print("   Note: First run may take longer as the model downloads")
    with _open_embedder(args, model) as embedder:
        print("✅ Embedding service ready")

        print("💾 Initializing vector store...")
        data_dir = _data_dir()
        store = _open_store(data_dir)
        print(f"✅ Vector store ready (data dir: {data_dir})")

        if args.semantic:
            print(
                f"📄 Using semantic chunking (max size: {chunk_size} chars, "
                f"overlap: {chunk_overlap} chars)"
            )
        else:
            print(
                f"📄 Using character-based chunking (size: {chunk_size} chars, "
                f"overlap: {chunk_overlap} chars)"
            )
        print()

        try:
            files = get_files_to_process(args.path, args.recursive, extensions)
        except OSError as err:
            raise _CommandError(f"failed to get files: {err}") from err

        print(f"Found {len(files)} files to index")

        for number, file in enumerate(files, start=1):
            print(f"Processing [{number}/{len(files)}] {file}")

            print("  ⏳ Loading document...", end="", flush=True)
            try:
                doc = load_from_file(file)
            except (OSError, ValueError) as err:
                print(f" ❌ Failed to load {file}: {err}")
                continue
            print(f" ✅ Loaded ({len(doc.content.encode('utf-8'))} bytes)")

            print("  ⏳ Chunking document...", end="", flush=True)
            chunks: list[Chunk]
            if args.semantic:
                chunks = chunk_smart_document(doc, chunk_size, chunk_overlap)
            else:
                chunks = chunk_document(doc, chunk_size, chunk_overlap)
            print(f" ✅ Created {len(chunks)} chunks")

            print("  ⏳ Generating embeddings...")
            for position, chunk in enumerate(chunks, start=1):
                percent = position / len(chunks) * 100
                print(
                    f"    [{position}/{len(chunks)}] Embedding chunk {position} "
                    f"({percent:.1f}%)...",
                    end="",
                    flush=True,
                )
                try:
                    vector = embedder.get_embedding(chunk.content)
                except EmbeddingError as err:
                    print(f" ❌ Failed: {err}")
                    continue
                print(f" ✅ Done ({len(vector)} dims)")

                try:
                    store.add(chunk.id, vector, chunk.content, chunk.metadata)
                except (OSError, ValueError) as err:
                    print(f"    ❌ Failed to store chunk {position - 1}: {err}")
                    continue
            print(f"  ✅ Completed file {file} ({len(chunks)} vectors stored)")
            print()

        print(
            f"\nIndexing complete! Indexed {len(files)} documents with "
            f"{store.count()} total vectors"
        )


def _run_query(args: argparse.Namespace, settings: dict[str, str]) -> None:
    with _open_embedder(args, settings["model"]) as embedder:
        store = _open_store(_data_dir())
        if store.count() == 0:
            raise _CommandError("no documents indexed. Please run 'edgerag index' first")

        try:
            client = OllamaClient(settings["ollama_url"], settings["ollama_model"])
        except LLMError as err:
            raise _CommandError(f"failed to initialize Ollama client: {err}") from err

        pipeline = Pipeline(embedder, store, client)
        if args.prompt_template:
            pipeline.prompt_template = args.prompt_template

        print("🔍 Searching for relevant information...")

        try:
            answer, sources = pipeline.query(args.question, args.top_k, args.threshold)
        except (EmbeddingError, LLMError, ValueError) as err:
            raise _CommandError(f"failed to process query: {err}") from err

    print("\n📖 Answer:")
    print(_RULE)
    print(answer)
    print(_RULE)

    if args.show_sources and sources:
        print(f"\n📚 Sources ({len(sources)} found):")
        for number, source in enumerate(sources, start=1):
            print(f"\n[{number}] Similarity: {source.score:.3f}")
            if source.metadata.get("file") is not None:
                print(f"File: {source.metadata['file']}")
            if source.metadata.get("chunk_id") is not None:
                print(f"Chunk: {source.metadata['chunk_id']}")
            print(f"Content: {truncate_string(source.content, 200)}...")


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    common.add_argument(
        "--config", help="config file (default is $HOME/.edgerag.yaml)"
    )
    common.add_argument(
        "--model",
        help=f"sentence-transformer model to use for embeddings (default {_embedding.DEFAULT_MODEL})",
    )
    common.add_argument(
        "--ollama-model",
        help=f"Ollama model to use for LLM inference (default {_llm.DEFAULT_MODEL})",
    )
    common.add_argument(
        "--ollama-url", help=f"Ollama server URL (default {_llm.DEFAULT_URL})"
    )
    common.add_argument(
        "--embedding-script", help="helper script that computes embeddings"
    )
    common.add_argument(
        "--python", help="Python interpreter that runs the embedding helper"
    )
    return common


def _build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="edgerag",
        description=_ROOT_DESCRIPTION,
        parents=[common],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.set_defaults(
        config="",
        model=None,
        ollama_model=None,
        ollama_url=None,
        embedding_script=None,
        python="python3",
        handler=None,
    )
    commands = parser.add_subparsers(dest="command")

    index = commands.add_parser(
        "index",
        parents=[common],
        help="Index documents for retrieval",
        description=_INDEX_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    index.add_argument("path", help="file or directory to index")
    index.add_argument(
        "-r", "--recursive", action="store_true", help="Recursively index directories"
    )
    index.add_argument(
        "-e",
        "--extensions",
        action="append",
        help="File extensions to index (comma separated)",
    )
    index.add_argument(
        "-c", "--chunk-size", type=int, default=200,
        help="Maximum chunk size for document splitting",
    )
    index.add_argument(
        "-o", "--chunk-overlap", type=int, default=50,
        help="Overlap between chunks when splitting documents",
    )
    index.add_argument(
        "-s", "--semantic", action="store_true",
        help="Use semantic chunking (split on paragraphs/sections)",
    )
    index.set_defaults(handler=_run_index)

    query = commands.add_parser(
        "query",
        parents=[common],
        help="Query the indexed documents using RAG",
        description=_QUERY_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    query.add_argument("question", help="the question to answer")
    query.add_argument(
        "-k", "--top-k", type=int, default=3,
        help="Number of most relevant chunks to retrieve",
    )
    query.add_argument(
        "-t", "--threshold", type=float, default=0.3,
        help="Similarity threshold for retrieval",
    )
    query.add_argument(
        "-p", "--prompt-template", default="", help="Custom prompt template for LLM"
    )
    query.add_argument(
        "-s", "--show-sources", action=argparse.BooleanOptionalAction, default=True,
        help="Show source documents in the response",
    )
    query.set_defaults(handler=_run_query)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.handler is None:
        parser.print_help()
        return 0

    config = load_config(args.config or None)
    settings = {
        "model": _resolve("model", args.model, config),
        "ollama_model": _resolve("ollama_model", args.ollama_model, config),
        "ollama_url": _resolve("ollama_url", args.ollama_url, config),
    }

    try:
        args.handler(args, settings)
    except _CommandError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())