"""Chunking, local embeddings, a JSON-file vector store and Ollama-backed question answering."""

__version__ = "0.1.0"