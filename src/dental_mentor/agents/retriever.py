"""Knowledge-base retrieval for the general mentor."""

import re
from typing import Any, Dict, List, Protocol

import structlog

from ..repositories.base import Repository
from .base import RunContext

logger = structlog.get_logger()

NO_RESULTS = "No relevant information found in the knowledge base."
SEARCH_FAILED = "An error occurred while searching the knowledge base."

_DISCOUNT_QUERY = re.compile(r"discount|promo code|coupon|promo|code", re.IGNORECASE)
_DISCOUNT_TERMS = ("discount", "promo", "coupon", "code")


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


def _row_text(row: Dict[str, Any]) -> str:
    metadata = row.get("metadata") or {}
    return " ".join(
        str(value or "")
        for value in (row.get("content_chunk"), metadata.get("title"), metadata.get("topic"), row.get("source_name"))
    ).lower()


def filter_discount_rows(query: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Narrow results to discount-related rows for discount questions, if any exist."""
    if not _DISCOUNT_QUERY.search(query):
        return rows
    discount_rows = [row for row in rows if any(term in _row_text(row) for term in _DISCOUNT_TERMS)]
    if discount_rows:
        logger.info("retriever_discount_filter", kept=len(discount_rows), total=len(rows))
        return discount_rows
    return rows


def format_results(rows: List[Dict[str, Any]]) -> str:
    blocks = []
    for index, row in enumerate(rows, start=1):
        metadata = row.get("metadata") or {}
        name = row.get("source_name") or metadata.get("title") or metadata.get("topic") or "Knowledge Base"
        header = f"[Source {index}: {name}]"
        if row.get("source_url"):
            header += f"\nSOURCE_URL: {row['source_url']}"
        similarity = float(row.get("similarity") or 0.0) * 100
        header += f"\nChunk #{row.get('chunk_index')}, Similarity: {similarity:.1f}%"
        blocks.append(f"{header}\n{row.get('content_chunk') or ''}")
    return "\n\n---\n\n".join(blocks)


class KnowledgeBaseRetriever:
    """Embeds the query, searches stored context chunks and records their sources."""

    def __init__(self, repository: Repository, embedder: Embedder, threshold: float = 0.3, count: int = 15):
        self.repository = repository
        self.embedder = embedder
        self.threshold = threshold
        self.count = count

    async def retrieve(self, query: str, context: RunContext) -> str:
        logger.info("retriever_search", query=query[:100])
        try:
            embedding = await self.embedder.embed(query)
            rows = await self.repository.match_context(embedding, self.threshold, self.count)
        except Exception as e:
            logger.error("retriever_failed", error=str(e))
            return SEARCH_FAILED

        if not rows:
            logger.info("retriever_no_results")
            return NO_RESULTS

        rows = filter_discount_rows(query, rows)
        context.sources = [
            {
                "id": row.get("id"),
                "context_id": row.get("context_id"),
                "source_name": row.get("source_name"),
                "source_url": row.get("source_url"),
                "chunk_index": row.get("chunk_index"),
                "similarity": row.get("similarity"),
            }
            for row in rows
        ]
        logger.info("retriever_results", count=len(rows))
        return format_results(rows)
