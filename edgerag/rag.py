"""Retrieval-augmented generation: find relevant chunks, then ask the model."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from edgerag.embedding import EmbeddingError
from edgerag.vectorstore import SearchResult, VectorStore

DEFAULT_PROMPT_TEMPLATE = """You are a helpful assistant that answers questions based on the provided context. Use only the information given in the context to answer the question. If the context doesn't contain enough information to answer the question, say so.

Context:
{{.Context}}

Question: {{.Question}}

Answer:"""

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in the indexed documents "
    "to answer your question."
)

_CONTEXT_PLACEHOLDER = "{{.Context}}"
_QUESTION_PLACEHOLDER = "{{.Question}}"
_CONTEXT_SEPARATOR = "\n\n---\n\n"


class Pipeline:
    """Embeds a question, retrieves similar chunks and has the model answer from them.

    ``embedder`` needs ``get_embedding`` and ``dimension``; ``llm`` needs
    ``generate``, ``generate_stream`` and a ``model`` attribute.
    """

    def __init__(
        self,
        embedder: Any,
        vector_store: VectorStore,
        llm: Any,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.llm = llm
        self.prompt_template = prompt_template

    def _retrieve(self, question: str, top_k: int, threshold: float) -> list[SearchResult]:
        embedding = self.embedder.get_embedding(question)
        return self.vector_store.search(embedding, top_k, threshold)

    def query(
        self, question: str, top_k: int = 3, threshold: float = 0.3
    ) -> tuple[str, list[SearchResult]]:
        """Answer ``question`` and return the answer with the chunks it was based on."""
        results = self._retrieve(question, top_k, threshold)
        if not results:
            return NO_RESULTS_ANSWER, results
        prompt = self.build_prompt(question, self.build_context(results))
        return self.llm.generate(prompt).strip(), results

    def query_stream(
        self,
        question: str,
        top_k: int,
        threshold: float,
        callback: Callable[[str], None],
    ) -> list[SearchResult]:
        """Pass the answer to ``callback`` piece by piece and return the chunks used."""
        results = self._retrieve(question, top_k, threshold)
        if not results:
            callback(NO_RESULTS_ANSWER)
            return results
        prompt = self.build_prompt(question, self.build_context(results))
        for piece in self.llm.generate_stream(prompt):
            callback(piece)
        return results

    def build_context(self, results: Sequence[SearchResult]) -> str:
        """Render search results as numbered documents for the prompt."""
        parts = []
        for number, result in enumerate(results, start=1):
            source = result.metadata.get("file")
            origin = f" from {source}" if isinstance(source, str) else ""
            parts.append(
                f"Document {number}{origin} (Similarity: {result.score:.3f}):\n"
                f"{result.content}"
            )
        return _CONTEXT_SEPARATOR.join(parts)

    def build_prompt(self, question: str, context: str) -> str:
        """Fill the prompt template with the context and the question."""
        prompt = self.prompt_template.replace(_CONTEXT_PLACEHOLDER, context)
        return prompt.replace(_QUESTION_PLACEHOLDER, question)

    def stats(self) -> dict[str, Any]:
        """Summarise the store, the model and, if it can be found, the embedding size."""
        stats: dict[str, Any] = {
            "vector_store_stats": self.vector_store.stats(),
            "llm_model": self.llm.model,
        }
        try:
            stats["embedding_dimension"] = self.embedder.dimension()
        except EmbeddingError:
            pass
        return stats