"""
Embedding generator tests: alignment, contextual headers and the plain fallback.
"""
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from knowledge_base.embedding import (
    CONTEXTUAL,
    PLAIN,
    DocumentContext,
    EmbeddingGenerator,
    OpenAIEmbeddingProvider,
    contextualize,
    get_provider,
    render_context_header,
)
from knowledge_base.errors import EmbeddingError

CHUNKS = ["first chunk about rivers", "second chunk about mountains", "third chunk about deserts"]
CONTEXT = DocumentContext(title="Geography.pdf", type="PDF Document", source="file")


class TestRenderContextHeader:

    def test_full_header_for_first_of_many(self):
        header = render_context_header(CONTEXT, 0, 3)
        assert header == (
            'Document: "Geography.pdf" (PDF Document) from file. '
            "This content is from the beginning of the document."
        )

    @pytest.mark.parametrize("index,position", [(0, "beginning"), (1, "middle"), (2, "end")])
    def test_position_follows_index(self, index, position):
        assert f"from the {position} of the document" in render_context_header(CONTEXT, index, 3)

    def test_single_chunk_has_no_position(self):
        assert render_context_header(CONTEXT, 0, 1) == 'Document: "Geography.pdf" (PDF Document) from file'

    def test_summary_only_on_first_chunk(self):
        ctx = CONTEXT._replace(summary="Overview of landforms")
        assert "Context: Overview of landforms" in render_context_header(ctx, 0, 2)
        assert "Context:" not in render_context_header(ctx, 1, 2)

    def test_partial_context(self):
        assert render_context_header(DocumentContext(type="Web Content"), 0, 1) == "Type: Web Content"
        assert render_context_header(DocumentContext(), 0, 1) == ""

    def test_contextualize_prefixes_each_chunk(self):
        out = contextualize(CHUNKS, CONTEXT)
        assert len(out) == 3
        for original, contextual in zip(CHUNKS, out):
            assert contextual.startswith('Document: "Geography.pdf"')
            assert contextual.endswith("\n\n" + original)


class TestEmbedChunks:

    def test_result_is_index_aligned(self, generator):
        result = generator.embed_chunks(CHUNKS, CONTEXT)

        assert result.ok
        assert len(result.chunks) == len(CHUNKS)
        assert [c.chunk_index for c in result.chunks] == [0, 1, 2]
        assert [c.content for c in result.chunks] == CHUNKS

    def test_contextual_mode_embeds_headers(self, generator, provider):
        result = generator.embed_chunks(CHUNKS, CONTEXT)

        assert result.mode == CONTEXTUAL
        assert not result.fell_back
        sent = provider.calls[0]
        assert all(text.startswith("Document: ") for text in sent)
        assert result.chunks[0].embedding == provider.vector(sent[0])

    def test_no_context_embeds_plain(self, generator, provider):
        result = generator.embed_chunks(CHUNKS)

        assert result.mode == PLAIN
        assert not result.fell_back
        assert provider.calls == [CHUNKS]

    def test_contextual_failure_falls_back_to_plain(self, generator, provider):
        provider.fail_contextual = True

        result = generator.embed_chunks(CHUNKS, CONTEXT)

        assert result.ok
        assert result.mode == PLAIN
        assert result.fell_back
        assert len(provider.calls) == 2
        assert [c.embedding for c in result.chunks] == [provider.vector(c) for c in CHUNKS]
        assert [c.chunk_index for c in result.chunks] == [0, 1, 2]

    def test_both_failures_return_error_without_raising(self, generator, provider):
        provider.fail_contextual = True
        provider.fail_plain = True

        result = generator.embed_chunks(CHUNKS, CONTEXT)

        assert not result.ok
        assert result.chunks == []
        assert isinstance(result.error, EmbeddingError)
        with pytest.raises(EmbeddingError):
            result.unwrap()

    def test_wrong_vector_count_triggers_fallback(self):
        provider = Mock()
        provider.embed_many.side_effect = [[[1.0, 0.0]], [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]]
        result = EmbeddingGenerator(provider).embed_chunks(CHUNKS, CONTEXT)

        assert result.ok
        assert result.fell_back
        assert [c.embedding for c in result.chunks] == [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]

    def test_empty_chunk_list_is_an_error(self, generator):
        result = generator.embed_chunks([])
        assert not result.ok


class TestEmbedQuery:

    def test_newlines_are_flattened(self, generator, provider):
        generator.embed_query("what is\nthe   answer?\n")
        assert provider.calls == [["what is the answer?"]]

    def test_blank_query_raises(self, generator):
        with pytest.raises(EmbeddingError):
            generator.embed_query(" \n ")

    def test_provider_failure_raises_embedding_error(self, generator, provider):
        provider.fail_plain = True
        with pytest.raises(EmbeddingError):
            generator.embed_query("anything")


class TestProviders:

    def test_openai_provider_orders_by_index_and_sets_dimensions(self):
        client = Mock()
        client.embeddings.create.return_value = SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.0, 1.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0]),
        ])
        provider = OpenAIEmbeddingProvider(client=client, model="text-embedding-3-small", dimensions=2)

        vectors = provider.embed_many(["a", "b"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input=["a", "b"], dimensions=2
        )

    def test_single_embed_uses_batch_call(self):
        client = Mock()
        client.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(index=0, embedding=[0.5])])
        provider = OpenAIEmbeddingProvider(client=client, dimensions=1)
        assert provider.embed("hello") == [0.5]

    def test_unknown_provider_name(self):
        with pytest.raises(ValueError):
            get_provider("nope")
