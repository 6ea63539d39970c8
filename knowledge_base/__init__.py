"""
Project knowledge base: document ingestion, retrieval and context assembly for RAG.
"""

__version__ = "0.6.0"
