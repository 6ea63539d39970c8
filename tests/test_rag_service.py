"""
RAG service tests: ingestion, updates, deletion and context building.
"""
from unittest.mock import patch

import pytest

from knowledge_base.errors import EmbeddingError, NotFoundError, ValidationError
from knowledge_base.schemas import DocumentSourceType, DocumentUpdate
from knowledge_base.services.rag_service import document_context

LONG_TEXT = "".join(chr(ord("a") + (i * 3) % 26) for i in range(2500))


class TestAddDocument:

    def test_long_document_is_chunked_and_embedded(self, service, repository, make_upload):
        doc = service.add_document("p1", "u1", make_upload(name="long.txt", content=LONG_TEXT))

        chunks = repository.get_chunks_by_document_id(doc.id)
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert all(c.embedding for c in chunks)
        assert all(c.project_id == "p1" for c in chunks)

        selected = service.get_selected_documents_content("p1", [doc.id])
        assert len(selected) == 3
        assert all(c.similarity == 1.0 for c in selected)

    def test_stored_chunks_hold_original_text(self, service, repository, provider, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content="Plain text about vector databases."))

        chunk = repository.get_chunks_by_document_id(doc.id)[0]
        assert chunk.content == "Plain text about vector databases."
        assert provider.calls[0][0].startswith('Document: "notes.txt" (Text File) from file')

    def test_contextual_failure_falls_back(self, service, repository, provider, make_upload):
        provider.fail_contextual = True

        doc = service.add_document("p1", "u1", make_upload(content=LONG_TEXT))

        chunks = repository.get_chunks_by_document_id(doc.id)
        assert len(chunks) == 3
        assert all(c.embedding is not None for c in chunks)

    def test_embedding_failure_removes_document(self, service, repository, provider, make_upload):
        provider.fail_contextual = True
        provider.fail_plain = True

        with pytest.raises(EmbeddingError):
            service.add_document("p1", "u1", make_upload(content=LONG_TEXT))

        assert service.get_documents_by_project("p1") == []

    def test_chunk_write_failure_removes_document(self, service, repository, make_upload):
        with patch.object(repository, "create_chunks", side_effect=RuntimeError("db down")):
            with pytest.raises(RuntimeError):
                service.add_document("p1", "u1", make_upload())

        assert repository.get_documents_by_project_id("p1") == []

    def test_failed_cleanup_keeps_original_error(self, service, repository, provider, make_upload):
        provider.fail_contextual = True
        provider.fail_plain = True

        with patch.object(repository, "delete_document", side_effect=RuntimeError("db down")) as delete:
            with pytest.raises(EmbeddingError):
                service.add_document("p1", "u1", make_upload(content=LONG_TEXT))

        delete.assert_called_once()

    def test_short_content_is_rejected_without_writes(self, service, repository, provider, make_upload):
        with pytest.raises(ValidationError) as exc:
            service.add_document("p1", "u1", make_upload(content="tiny"))

        assert "too short" in exc.value.reason
        assert repository.get_documents_by_project_id("p1") == []
        assert provider.calls == []

    def test_unextractable_binary_is_rejected(self, service, repository, make_upload):
        with pytest.raises(ValidationError) as exc:
            service.add_document("p1", "u1", make_upload(name="scan.pdf", content="%PDF", mime_type="application/pdf"))

        assert exc.value.reason == "Text extraction is not available for application/pdf"
        assert repository.get_documents_by_project_id("p1") == []

    def test_text_bytes_are_stored_as_text(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content=b"Bytes that decode to readable text."))
        assert doc.content == "Bytes that decode to readable text."
        assert doc.size == len(b"Bytes that decode to readable text.")


class TestUpdateDocument:

    def test_new_content_replaces_chunks(self, service, repository, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content=LONG_TEXT))

        updated = service.update_document(doc.id, DocumentUpdate(content="Completely new and shorter content."))

        chunks = repository.get_chunks_by_document_id(doc.id)
        assert updated.content == "Completely new and shorter content."
        assert [c.chunk_index for c in chunks] == [0]
        assert chunks[0].content == "Completely new and shorter content."

    def test_new_content_updates_size(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content="x" * 2000))
        assert doc.size == 2000

        updated = service.update_document(doc.id, DocumentUpdate(content="short new content"))

        assert updated.size == 17
        assert service.get_document(doc.id).size == 17

    def test_size_counts_utf8_bytes(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload())
        updated = service.update_document(doc.id, DocumentUpdate(content="café menu notes"))
        assert updated.size == len("café menu notes".encode("utf-8"))

    def test_rename_keeps_size(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content="y" * 300))
        assert service.update_document(doc.id, DocumentUpdate(name="other.txt")).size == 300

    def test_failed_reembedding_keeps_previous_state(self, service, repository, provider, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content=LONG_TEXT))
        before = [c.id for c in repository.get_chunks_by_document_id(doc.id)]
        provider.fail_contextual = True
        provider.fail_plain = True

        with pytest.raises(EmbeddingError):
            service.update_document(doc.id, DocumentUpdate(content="Replacement content that will fail."))

        assert [c.id for c in repository.get_chunks_by_document_id(doc.id)] == before
        assert service.get_document(doc.id).content == LONG_TEXT

    def test_invalid_new_content_is_rejected(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload())
        with pytest.raises(ValidationError):
            service.update_document(doc.id, DocumentUpdate(content="  "))

    def test_rename_keeps_chunks(self, service, repository, make_upload):
        doc = service.add_document("p1", "u1", make_upload())
        before = [c.id for c in repository.get_chunks_by_document_id(doc.id)]

        updated = service.update_document(doc.id, DocumentUpdate(name="renamed.txt"))

        assert updated.name == "renamed.txt"
        assert [c.id for c in repository.get_chunks_by_document_id(doc.id)] == before

    def test_missing_document(self, service):
        with pytest.raises(NotFoundError):
            service.update_document("missing", DocumentUpdate(name="x"))


class TestDeleteAndRead:

    def test_delete_removes_chunks(self, service, repository, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content=LONG_TEXT))

        service.delete_document(doc.id)

        assert repository.get_chunks_by_document_id(doc.id) == []
        assert service.get_selected_documents_content("p1", [doc.id]) == []
        with pytest.raises(NotFoundError):
            service.get_document(doc.id)

    def test_deleted_document_is_not_searchable(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content=LONG_TEXT))
        assert service.search_relevant_content("p1", "letters", limit=10, threshold=0.0)

        service.delete_document(doc.id)

        assert service.search_relevant_content("p1", "letters", limit=10, threshold=0.0) == []
        assert service.search_relevant_content(
            "p1", "letters", limit=10, threshold=0.0, selected_document_ids=[doc.id]
        ) == []

    def test_delete_missing_document(self, service):
        with pytest.raises(NotFoundError):
            service.delete_document("missing")

    def test_documents_listed_newest_first(self, service, make_upload):
        first = service.add_document("p1", "u1", make_upload(name="first.txt"))
        second = service.add_document("p1", "u1", make_upload(name="second.txt"))
        service.add_document("p2", "u1", make_upload(name="elsewhere.txt"))

        assert [d.id for d in service.get_documents_by_project("p1")] == [second.id, first.id]


class TestRetrievalAndContext:

    def test_search_finds_project_chunks(self, service, make_upload):
        doc = service.add_document("p1", "u1", make_upload(content="Notes on indexing strategies for retrieval."))
        results = service.search_relevant_content("p1", "indexing strategies", limit=5, threshold=0.0)
        assert [r.document_id for r in results] == [doc.id]

    def test_selected_content_soft_fails(self, service, repository):
        with patch.object(repository, "get_all_chunks_from_documents", side_effect=RuntimeError("db down")):
            assert service.get_selected_documents_content("p1", ["d1"]) == []

    def test_build_context_from_selection(self, service, make_upload):
        alpha = service.add_document("p1", "u1", make_upload(name="Alpha.txt", content=LONG_TEXT))
        beta = service.add_document("p1", "u1", make_upload(name="Beta.txt", content="Beta has a single chunk."))

        context = service.build_context("p1", selected_document_ids=[alpha.id, beta.id])

        assert '[Source 1: Text File - "Alpha.txt"]\nSection 1:' in context
        assert "Section 3:" in context
        assert '[Source 2: Text File - "Beta.txt"]\nContent:\nBeta has a single chunk.' in context

    def test_build_context_from_query(self, service, make_upload):
        service.add_document("p1", "u1", make_upload(name="Guide.txt", content="How to tune the retrieval threshold."))
        context = service.build_context("p1", query="tune retrieval", threshold=0.0)
        assert '"Guide.txt"' in context

    def test_build_context_without_query_or_selection(self, service, make_upload):
        service.add_document("p1", "u1", make_upload())
        assert service.build_context("p1") == ""

    def test_build_context_soft_fails(self, service):
        with patch.object(service.retrieval, "search", side_effect=EmbeddingError("provider down")):
            assert service.build_context("p1", query="anything") == ""

    def test_search_fails_loudly(self, service, provider, make_upload):
        service.add_document("p1", "u1", make_upload())
        provider.fail_plain = True
        with pytest.raises(EmbeddingError):
            service.search_relevant_content("p1", "anything")


class TestDocumentContext:

    def test_youtube_context(self, make_upload):
        upload = make_upload(
            name="abc",
            document_type=DocumentSourceType.YOUTUBE,
            youtube_title="Intro to RAG",
            youtube_channel_name="ML Weekly",
        )
        ctx = document_context(upload)
        assert ctx.title == "Intro to RAG"
        assert ctx.type == "Video Transcript"
        assert ctx.source == "YouTube channel ML Weekly"

    def test_web_context(self, make_upload):
        upload = make_upload(
            name="example.com",
            mime_type="text/markdown",
            document_type=DocumentSourceType.WEB,
            web_url="https://example.com/post",
        )
        ctx = document_context(upload)
        assert ctx == ("example.com", "Web Content", "https://example.com/post", None)

    def test_file_context(self, make_upload):
        ctx = document_context(make_upload(name="report.pdf", mime_type="application/pdf"))
        assert (ctx.title, ctx.type, ctx.source) == ("report.pdf", "PDF Document", "file")
