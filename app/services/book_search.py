"""External book search fallback (Google Books volumes API)."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

import requests

from app.schemas.book import CandidateBook
from app.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"


class BookSearchClient:
    """Searches the public catalog and maps volumes to CandidateBook."""

    def __init__(
        self,
        base_url: str = "https://www.googleapis.com/books/v1/volumes",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        placeholder_thumbnail: str = "/placeholder.svg?height=200&width=150",
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.placeholder_thumbnail = placeholder_thumbnail
        self.http = http or requests.Session()

    def search(self, query: str, limit: int = 5) -> list[CandidateBook]:
        """
        Query the volumes endpoint.

        Raises:
            ExternalServiceError: On network failure or a non-2xx response
        """
        params = {"q": query, "maxResults": limit}
        if self.api_key:
            params["key"] = self.api_key

        try:
            res = self.http.get(self.base_url, params=params, timeout=self.timeout)
            res.raise_for_status()
            data = res.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Book search failed for query={query!r}: {e}")
            raise ExternalServiceError("Book search is temporarily unavailable") from e

        books = []
        for item in (data.get("items") or [])[:limit]:
            candidate = self.to_candidate(item)
            if candidate is not None:
                books.append(candidate)
        return books

    def to_candidate(self, item: Dict[str, Any]) -> Optional[CandidateBook]:
        """Map one volume to a CandidateBook; volumes without a title are skipped."""
        info = item.get("volumeInfo") or {}
        title = (info.get("title") or "").strip()
        if not title:
            return None

        authors = info.get("authors") or []
        isbn = next(
            (
                ident.get("identifier")
                for ident in info.get("industryIdentifiers") or []
                if ident.get("type") == "ISBN_13"
            ),
            None,
        )
        thumbnail = (info.get("imageLinks") or {}).get("thumbnail")

        return CandidateBook(
            title=title,
            author=", ".join(authors) if authors else UNKNOWN_AUTHOR,
            year=parse_year(info.get("publishedDate")),
            isbn=isbn,
            thumbnail=thumbnail or self.placeholder_thumbnail,
            description=info.get("description") or "",
            amazon_link=f"https://www.amazon.com/s?k={quote_plus(title)}",
            audible_link=f"https://www.audible.com/search?keywords={quote_plus(title)}",
            source="external",
        )

    def close(self) -> None:
        self.http.close()


def parse_year(published: Optional[str]) -> Optional[int]:
    # publishedDate is "YYYY", "YYYY-MM" or "YYYY-MM-DD"
    if not published:
        return None
    head = published[:4]
    return int(head) if head.isdigit() else None
