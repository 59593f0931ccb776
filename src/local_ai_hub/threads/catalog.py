"""
Thread Catalog - Cursor-paginated list of AI-session conversations.

One pagination session starts with fetch_first_page() and continues with
fetch_next_page() using the returned cursors. Within a session the list is
duplicate-free and keeps server order. No cursor means end of list, and
load_more() becomes inert.
"""

import structlog

from ..contracts import BackendProtocol
from ..errors import HubError
from ..models import ThreadPage, ThreadSummary

__all__ = ["ThreadCatalog"]

logger = structlog.get_logger(__name__)


class ThreadCatalog:
    """In-memory view of the conversation list.

    Errors never clear what is already loaded; they are exposed through
    ``error`` and cleared by the next successful fetch.

    Example:
        catalog = ThreadCatalog(backend, page_size=40)

        await catalog.fetch_first_page()
        while catalog.has_more:
            await catalog.load_more()
    """

    def __init__(self, backend: BackendProtocol, page_size: int = 40) -> None:
        self.backend = backend
        self.page_size = page_size

        self.threads: list[ThreadSummary] = []
        self.next_cursor: str | None = None
        self.error: str | None = None
        self.loaded = False

        self._ids: set[str] = set()
        self._session = 0
        self._in_flight: set[str | None] = set()

    @property
    def has_more(self) -> bool:
        """Whether the "load more" control should be enabled."""
        return self.loaded and self.next_cursor is not None

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    async def fetch_first_page(self, page_size: int | None = None) -> ThreadPage | None:
        """Start a new pagination session, replacing the list.

        Returns:
            The page, or None if the fetch failed or was already running
        """
        if None in self._in_flight:
            return None

        self._session += 1
        session = self._session
        self._in_flight.add(None)
        try:
            page = await self.backend.thread_list(page_size or self.page_size, None)
        except HubError as e:
            self._record_error(e, cursor=None)
            return None
        finally:
            self._in_flight.discard(None)

        if session != self._session:
            return None

        self.threads = []
        self._ids = set()
        self._append(page)
        self.loaded = True
        self.error = None
        logger.debug("thread_page_loaded", count=len(page.threads), more=page.next_cursor is not None)
        return page

    async def fetch_next_page(
        self,
        cursor: str | None,
        page_size: int | None = None,
    ) -> ThreadPage | None:
        """Append the page following ``cursor``.

        Returns:
            The page, or None when there is nothing to load, the same cursor
            is already being fetched, the fetch failed, or a newer session
            replaced the list meanwhile.
        """
        if cursor is None or cursor in self._in_flight:
            return None

        session = self._session
        self._in_flight.add(cursor)
        try:
            page = await self.backend.thread_list(page_size or self.page_size, cursor)
        except HubError as e:
            self._record_error(e, cursor=cursor)
            return None
        finally:
            self._in_flight.discard(cursor)

        if session != self._session:
            logger.debug("thread_page_discarded", cursor=cursor)
            return None
        if cursor != self.next_cursor:
            # Another fetch already advanced past this page
            return None

        self._append(page)
        self.error = None
        return page

    async def load_more(self) -> ThreadPage | None:
        """Fetch the next page of the current session (inert at the end)."""
        if not self.has_more:
            return None
        return await self.fetch_next_page(self.next_cursor)

    def _append(self, page: ThreadPage) -> None:
        for summary in page.threads:
            if summary.id in self._ids:
                continue
            self._ids.add(summary.id)
            self.threads.append(summary)
        self.next_cursor = page.next_cursor

    def _record_error(self, error: HubError, cursor: str | None) -> None:
        self.error = str(error)
        logger.warning("thread_list_failed", cursor=cursor, error=self.error)

    def __len__(self) -> int:
        return len(self.threads)
