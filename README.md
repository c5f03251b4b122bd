# edgerag

A command-line tool and small library for building and querying a retrieval-augmented generation (RAG) index on your own machine. Documents are split into chunks, each chunk is embedded by a local helper process, the vectors are kept as JSON files, and questions are answered by a locally running Ollama server from the most similar chunks.

## Installation

```
pip install .
```

You also need:

- An embedding helper script (see below) and a Python interpreter that can run it.
- An Ollama server, by default at `http://localhost:11434`, with a model pulled (default `llama3.2`).

## The embedding helper

Embeddings come from a separate script that `edgerag` starts and talks to over standard input and output, one JSON object per line:

1. On start the script prints `{"status": "ready"}`.
2. For each request `{"text": "...", "model": "..."}` it prints `{"embedding": [...]}`, or `{"error": "..."}` on failure.
3. A line `QUIT` asks it to exit.

The script is not part of this package. By default it is looked for at `scripts/embeddings.py` beside the `edgerag` package directory; point to your own with `--embedding-script`, and choose the interpreter with `--python` (default `python3`). A request that gets no answer within 120 seconds fails.

## Indexing documents

```
edgerag index ./docs --recursive
edgerag index notes.txt
edgerag index docs/ --semantic --chunk-size 800
```

Options:

- `-r, --recursive`: descend into subdirectories
- `-e, --extensions`: file extensions to index, comma separated and repeatable (default `.txt,.md,.go,.py,.js`)
- `-c, --chunk-size`: largest chunk size in characters (default 200)
- `-o, --chunk-overlap`: overlap between chunks in characters (default 50)
- `-s, --semantic`: split on paragraphs, and for Markdown files on headers first

Files are processed in name order. A file that cannot be read, or is not valid UTF-8, is reported and skipped. Vectors are stored as one JSON file per chunk under `$HOME/.edgerag/vectors`; indexing a file again overwrites its chunks.

## Querying

```
edgerag query "What are the key features of Go?"
edgerag query "How do I initialize a module?" --top-k 5 --threshold 0.4
```

Options:

- `-k, --top-k`: number of chunks to retrieve (default 3)
- `-t, --threshold`: lowest cosine similarity to accept (default 0.3)
- `-p, --prompt-template`: custom prompt, in which `{{.Context}}` and `{{.Question}}` are replaced
- `-s, --show-sources` / `--no-show-sources`: print the retrieved sources (on by default)

The command fails if nothing has been indexed yet. If no chunk reaches the threshold, the answer says that no relevant information was found and the model is not asked.

## Settings

These options are accepted before or after the command:

- `--config`: YAML configuration file (default `~/.edgerag.yaml`, or `~/.edgerag.yml`)
- `--model`: sentence-transformer model name passed to the helper (default `paraphrase-MiniLM-L3-v2`)
- `--ollama-model`: Ollama model (default `llama3.2`)
- `--ollama-url`: Ollama server URL (default `http://localhost:11434`)
- `--embedding-script`, `--python`: see above

`model`, `ollama_model` and `ollama_url` are taken from the command-line option first, then from the environment variables `MODEL`, `OLLAMA_MODEL` and `OLLAMA_URL`, then from the configuration file, and otherwise from the defaults.

## Using it as a library

```python
from edgerag.document import load_from_file, chunk_smart_document
from edgerag.vectorstore import MemoryStore

doc = load_from_file("notes.md")
chunks = chunk_smart_document(doc, 800, 50)

store = MemoryStore()
for number, chunk in enumerate(chunks):
    store.add(chunk.id, [1.0, float(number)], chunk.content, chunk.metadata)

for result in store.search([1.0, 0.0], top_k=3, threshold=0.3):
    print(f"{result.score:.3f} {result.id}")
```

- `edgerag.document`: `Document`, `Chunk`, `load_from_file`, `load_from_string`, and the splitters `chunk_document` (fixed size, breaking at spaces), `chunk_by_lines`, `chunk_semantic_document` (paragraphs) and `chunk_smart_document` (Markdown headers, then paragraphs); `get_file_type` names a file's kind from its extension.
- `edgerag.vectorstore`: the `VectorStore` interface, `MemoryStore`, `PersistentStore` (JSON files in a directory), `cosine_similarity` and `VectorNotFoundError`.
- `edgerag.embedding`: `EmbeddingService`, a context manager around the helper process, with `get_embedding`, `get_embeddings` and `dimension`; failures raise `EmbeddingError`.
- `edgerag.llm`: `OllamaClient` with `generate`, `generate_stream` (a generator of answer pieces) and `list_models`; failures raise `LLMError`.
- `edgerag.rag`: `Pipeline`, which ties an embedder, a store and a client together with `query`, `query_stream` (answer pieces go to a callback), `build_context`, `build_prompt` and `stats`.

## What it does not do

- It does not include the embedding helper script; you supply one that follows the protocol above.
- The command line has no way to list, delete or clear indexed vectors; use `PersistentStore` from Python, or remove the files under `$HOME/.edgerag/vectors`.
- `edgerag query` prints the whole answer once it is complete; streaming is only available through the library.