"""
Unit tests for EmbeddingService and vector similarity helpers.
"""

from types import SimpleNamespace

import pytest
from src.app.errors import KnowItAllError
from src.llm.config import LLMConfig
from src.llm.embeddings import EmbeddingService, cosine_similarity, find_most_similar


class CharEncoding:
    """One token per character, enough to exercise truncation."""

    def encode(self, text):
        return list(text)

    def decode(self, tokens):
        return "".join(tokens)


class StubEmbeddings:
    def __init__(self, dims=4, error=None):
        self.dims = dims
        self.error = error
        self.calls = []

    def create(self, model, input, dimensions):
        self.calls.append({"model": model, "input": input, "dimensions": dimensions})
        if self.error:
            raise self.error
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=[0.1] * self.dims) for _ in input],
            usage=SimpleNamespace(total_tokens=sum(len(t) for t in input)),
        )


def make_service(stub, dimensions=4):
    client = SimpleNamespace(embeddings=stub)
    return EmbeddingService(client=client, dimensions=dimensions, encoding=CharEncoding())


class TestEmbeddingService:

    def test_single_embedding(self):
        stub = StubEmbeddings()
        vec = make_service(stub).generate_embedding("pricing strategy")

        assert vec == [0.1] * 4
        assert stub.calls[0]["model"] == "text-embedding-3-small"
        assert stub.calls[0]["dimensions"] == 4

    def test_batch_preserves_order_and_count(self):
        stub = StubEmbeddings()
        vecs = make_service(stub).generate_embeddings_batch(["a", "b", "c"])

        assert len(vecs) == 3
        assert stub.calls[0]["input"] == ["a", "b", "c"]

    def test_truncates_long_input(self):
        service = make_service(StubEmbeddings())
        assert service.truncate_text("x" * 20, max_tokens=5) == "xxxxx"
        assert service.truncate_text("short", max_tokens=5) == "short"

    def test_dimension_mismatch(self):
        service = make_service(StubEmbeddings(dims=3), dimensions=4)

        with pytest.raises(KnowItAllError) as exc_info:
            service.generate_embedding("text")
        assert exc_info.value.code == "EMBEDDING_DIMENSION_MISMATCH"

    def test_api_failure(self):
        service = make_service(StubEmbeddings(error=ConnectionError("timeout")))

        with pytest.raises(KnowItAllError) as exc_info:
            service.generate_embedding("text")
        assert exc_info.value.code == "EMBEDDING_GENERATION_FAILED"
        assert exc_info.value.details == {"originalError": "timeout"}

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(KnowItAllError) as exc_info:
            EmbeddingService(encoding=CharEncoding())
        assert exc_info.value.code == "OPENAI_API_KEY_MISSING"

    def test_cost_estimate(self):
        service = make_service(StubEmbeddings())
        # 1000 chars -> 1000 tokens with the char encoding
        assert service.estimate_embedding_cost("x" * 1000) == pytest.approx(0.00002)

    def test_from_config_uses_env_settings(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_MODEL", "text-embedding-3-large")
        monkeypatch.setenv("EMBEDDING_DIMENSIONS", "512")
        stub = StubEmbeddings(dims=512)

        service = EmbeddingService.from_config(
            LLMConfig.from_env(), client=SimpleNamespace(embeddings=stub), encoding=CharEncoding()
        )
        vec = service.generate_embedding("pricing")

        assert len(vec) == 512
        assert stub.calls[0]["model"] == "text-embedding-3-large"
        assert stub.calls[0]["dimensions"] == 512


class TestSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(0.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.5)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])

    def test_find_most_similar(self):
        docs = [
            {"id": "far", "embedding": [-1.0, 0.0]},
            {"id": "near", "embedding": [1.0, 0.1]},
            {"id": "mid", "embedding": [0.0, 1.0]},
        ]
        ranked = find_most_similar([1.0, 0.0], docs, top_n=2)

        assert [r["id"] for r in ranked] == ["near", "mid"]
        assert ranked[0]["similarity"] >= ranked[1]["similarity"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
