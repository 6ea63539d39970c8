from typing import List, Optional, Sequence
from time import perf_counter

from .db.repository import RAGRepository
from .embedding import EmbeddingGenerator
from .logging_config import logger
from .schemas import ChunkWithSimilarity


class RetrievalEngine:
    """
    Two ways to pick chunks for a question:

    - `search`: rank the project's chunks against the query embedding.
    - `get_selected`: take every chunk of documents the user explicitly
      selected, unranked, with similarity 1.0.
    """

    def __init__(self, repository: RAGRepository, generator: EmbeddingGenerator):
        self.repository = repository
        self.generator = generator

    def search(
        self,
        project_id: str,
        query: str,
        limit: int,
        threshold: float,
        document_ids: Optional[Sequence[str]] = None,
    ) -> List[ChunkWithSimilarity]:
        """
        Search for chunks similar to the query in one project.

        Parameters:
        project_id (str): Project whose documents are searched.
        query (str): Natural language query; blank queries return [].
        limit (int): Maximum number of chunks to return.
        threshold (float): Minimum similarity score.
        document_ids (list): Optional restriction to these documents.

        Returns:
        List[ChunkWithSimilarity]: Best matches first.
        """
        if not query or not query.strip() or limit <= 0:
            return []

        query_embedding = self.generator.embed_query(query)
        t = perf_counter()
        results = self.repository.search_by_similarity(
            project_id,
            query_embedding,
            limit,
            threshold,
            document_ids=document_ids,
        )
        logger.info(
            "Similarity search finished",
            project_id=project_id,
            results=len(results),
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        return results

    def get_selected(self, project_id: str, document_ids: Sequence[str]) -> List[ChunkWithSimilarity]:
        if not document_ids:
            return []

        results = self.repository.get_all_chunks_from_documents(project_id, document_ids)
        logger.info(
            "Loaded selected documents",
            project_id=project_id,
            documents=len(set(document_ids)),
            chunks=len(results),
        )
        return results
