import re
import uuid
from collections import Counter
from typing import List, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.database.models import Document
from case_analysis.repositories.base_repository import BaseRepository

_STOPWORDS = {
    "about", "after", "also", "been", "before", "being", "client", "could", "does",
    "from", "have", "into", "more", "other", "over", "should", "such", "than",
    "that", "their", "them", "then", "there", "these", "they", "this", "those",
    "under", "were", "what", "when", "where", "which", "while", "will", "with",
    "would", "your",
}


def extract_search_terms(text: str, max_terms: int = 8) -> List[str]:
    """Pick the most frequent non-trivial words of a passage as search terms."""
    words = re.findall(r"[a-zA-Z][a-zA-Z\-]{3,}", text.lower())
    counts = Counter(word for word in words if word not in _STOPWORDS)
    return [word for word, _ in counts.most_common(max_terms)]


class DocumentRepository(BaseRepository[Document]):
    """Keyword search over the documents table."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def search(
        self,
        text: str,
        limit: int = 5,
        client_id: Optional[uuid.UUID] = None,
    ) -> Sequence[Document]:
        """Find documents whose title or content mentions the passage's key terms.

        Results are ranked by how many distinct terms they contain.

        Args:
            text: Passage to search for (typically the case summary)
            limit: Maximum number of documents to return
            client_id: Also include this client's own documents when set

        Returns:
            Matching documents, best match first
        """
        terms = extract_search_terms(text)
        if not terms:
            return []

        conditions = []
        for term in terms:
            pattern = f"%{term}%"
            conditions.append(Document.title.ilike(pattern))
            conditions.append(Document.content.ilike(pattern))

        query = select(Document).where(or_(*conditions))
        if client_id is not None:
            query = query.where(or_(Document.client_id.is_(None), Document.client_id == client_id))
        else:
            query = query.where(Document.client_id.is_(None))

        # Over-fetch so ranking has something to choose from
        query = query.limit(limit * 4)
        result = await self.session.execute(query)
        documents = list(result.scalars().all())

        def score(document: Document) -> int:
            haystack = f"{document.title} {document.content}".lower()
            return sum(1 for term in terms if term in haystack)

        documents.sort(key=score, reverse=True)
        return documents[:limit]
