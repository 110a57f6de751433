"""Service handles shared by request handlers.

Built once in the application lifespan and closed on shutdown; routes reach
them through the dependencies in `app.core.deps`.
"""
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.engine import Engine

from app.config import Settings
from app.database import build_engine
from app.services.book_search import BookSearchClient
from app.services.catalog_service import BookCatalogResolver
from app.services.completion import CompletionClient
from app.services.conversation_manager import ConversationManager, SessionRegistry
from app.services.quota_service import DailyQuotaTracker


@dataclass
class ServiceContainer:
    settings: Settings
    engine: Engine
    completion: CompletionClient
    book_search: BookSearchClient
    quota: DailyQuotaTracker
    catalog: BookCatalogResolver
    sessions: SessionRegistry = field(init=False)

    def __post_init__(self):
        self.sessions = SessionRegistry(self.new_conversation_manager)

    def new_conversation_manager(self, user_id: int) -> ConversationManager:
        return ConversationManager(user_id, quota=self.quota, completion=self.completion)

    def close(self) -> None:
        self.sessions.clear()
        self.completion.close()
        self.book_search.close()
        self.engine.dispose()


def build_services(
    settings: Settings,
    engine: Optional[Engine] = None,
    completion: Optional[CompletionClient] = None,
    book_search: Optional[BookSearchClient] = None,
) -> ServiceContainer:
    """Construct the service graph; collaborators may be supplied for tests."""
    engine = engine or build_engine(settings.DATABASE_URL)
    completion = completion or CompletionClient(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        timeout=settings.OPENAI_TIMEOUT,
    )
    book_search = book_search or BookSearchClient(
        base_url=settings.GOOGLE_BOOKS_URL,
        api_key=settings.GOOGLE_BOOKS_API_KEY,
        timeout=settings.BOOK_SEARCH_TIMEOUT,
        placeholder_thumbnail=settings.PLACEHOLDER_THUMBNAIL,
    )
    quota = DailyQuotaTracker(
        limit=settings.DAILY_MESSAGE_LIMIT,
        warning_threshold=settings.DAILY_LIMIT_WARNING,
    )
    catalog = BookCatalogResolver(
        book_search,
        min_query_length=settings.MIN_SEARCH_LENGTH,
        result_limit=settings.SEARCH_RESULT_LIMIT,
        free_tier_limit=settings.FREE_TIER_BOOK_LIMIT,
        dedup_key=settings.CATALOG_DEDUP_KEY,
        placeholder_thumbnail=settings.PLACEHOLDER_THUMBNAIL,
    )
    return ServiceContainer(
        settings=settings,
        engine=engine,
        completion=completion,
        book_search=book_search,
        quota=quota,
        catalog=catalog,
    )
