import pytest

from edgerag.embedding import EmbeddingError
from edgerag.rag import DEFAULT_PROMPT_TEMPLATE, NO_RESULTS_ANSWER, Pipeline
from edgerag.vectorstore import MemoryStore, SearchResult


class FakeEmbedder:
    def __init__(self, vectors, fail_dimension=False):
        self.vectors = vectors
        self.fail_dimension = fail_dimension
        self.calls = []

    def get_embedding(self, text):
        self.calls.append(text)
        return self.vectors[text]

    def dimension(self):
        if self.fail_dimension:
            raise EmbeddingError("helper gone")
        return len(next(iter(self.vectors.values())))


class FakeLLM:
    def __init__(self, answer="  the answer  ", pieces=("a", "b")):
        self.model = "llama3.2"
        self.answer = answer
        self.pieces = pieces
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.answer

    def generate_stream(self, prompt):
        self.prompts.append(prompt)
        yield from self.pieces


@pytest.fixture
def store():
    memory = MemoryStore()
    memory.add("alpha", [1.0, 0.0], "alpha text", {"file": "a.md"})
    memory.add("beta", [0.8, 0.6], "beta text", {})
    memory.add("gamma", [0.0, 1.0], "gamma text", {"file": "c.md"})
    return memory


def make_pipeline(store, llm=None, **embedder_kwargs):
    embedder = FakeEmbedder({"question?": [1.0, 0.0], "nothing?": [-1.0, 0.0]}, **embedder_kwargs)
    return Pipeline(embedder, store, llm or FakeLLM()), embedder


def test_query_answer_is_stripped_and_results_ordered(store):
    llm = FakeLLM()
    pipeline, embedder = make_pipeline(store, llm)
    answer, results = pipeline.query("question?", 3, 0.3)
    assert answer == "the answer"
    assert [r.id for r in results] == ["alpha", "beta"]
    assert embedder.calls == ["question?"]
    assert len(llm.prompts) == 1
    prompt = llm.prompts[0]
    assert prompt.startswith("You are a helpful assistant")
    assert "Question: question?" in prompt
    assert "alpha text" in prompt and "beta text" in prompt
    assert "gamma text" not in prompt


def test_query_respects_top_k(store):
    pipeline, _ = make_pipeline(store)
    _, results = pipeline.query("question?", 1, 0.0)
    assert [r.id for r in results] == ["alpha"]


def test_query_without_results_skips_llm(store):
    llm = FakeLLM()
    pipeline, _ = make_pipeline(store, llm)
    answer, results = pipeline.query("nothing?", 3, 0.3)
    assert answer == NO_RESULTS_ANSWER
    assert results == []
    assert llm.prompts == []


def test_query_stream_passes_pieces(store):
    received = []
    pipeline, _ = make_pipeline(store, FakeLLM(pieces=("Hel", "lo")))
    results = pipeline.query_stream("question?", 3, 0.3, received.append)
    assert received == ["Hel", "lo"]
    assert [r.id for r in results] == ["alpha", "beta"]


def test_query_stream_without_results(store):
    received = []
    llm = FakeLLM()
    pipeline, _ = make_pipeline(store, llm)
    results = pipeline.query_stream("nothing?", 3, 0.3, received.append)
    assert received == [NO_RESULTS_ANSWER]
    assert results == []
    assert llm.prompts == []


def test_build_context_formats_documents(store):
    pipeline, _ = make_pipeline(store)
    results = [
        SearchResult(id="x", embedding=[1.0], content="alpha text", metadata={"file": "a.md"}, score=1.0),
        SearchResult(id="y", embedding=[1.0], content="beta text", metadata={}, score=0.5),
    ]
    context = pipeline.build_context(results)
    first, second = context.split("\n\n---\n\n")
    assert first == "Document 1 from a.md (Similarity: 1.000):\nalpha text"
    assert second.startswith("Document 2 (Similarity: 0.500):")
    assert second.endswith("\nbeta text")


def test_build_context_empty(store):
    pipeline, _ = make_pipeline(store)
    assert pipeline.build_context([]) == ""


def test_build_prompt_custom_template(store):
    pipeline, _ = make_pipeline(store)
    pipeline.prompt_template = "Q={{.Question}} C={{.Context}} Q2={{.Question}}"
    assert pipeline.build_prompt("why", "because") == "Q=why C=because Q2=why"


def test_build_prompt_default_template_has_no_placeholders(store):
    pipeline, _ = make_pipeline(store)
    prompt = pipeline.build_prompt("why", "because")
    assert "{{." not in prompt
    assert prompt.endswith("Question: why\n\nAnswer:")
    assert pipeline.prompt_template == DEFAULT_PROMPT_TEMPLATE


def test_stats_includes_dimension(store):
    pipeline, _ = make_pipeline(store)
    stats = pipeline.stats()
    assert stats["llm_model"] == "llama3.2"
    assert stats["embedding_dimension"] == 2
    assert stats["vector_store_stats"]["total_vectors"] == 3


def test_stats_omits_dimension_on_embedding_error(store):
    pipeline, _ = make_pipeline(store, fail_dimension=True)
    stats = pipeline.stats()
    assert "embedding_dimension" not in stats
    assert stats["vector_store_stats"] == store.stats()