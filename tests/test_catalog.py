"""Tests for the thread catalog."""

import asyncio

import pytest

from local_ai_hub.errors import TransportUnavailable
from local_ai_hub.models import ThreadPage
from local_ai_hub.threads import ThreadCatalog


class TestPagination:
    """Test cursor pagination."""

    @pytest.mark.asyncio
    async def test_first_page_and_load_more(self, backend, make_threads):
        """50 threads at 40 per page: two pages, then the end."""
        backend.threads = make_threads(50)
        catalog = ThreadCatalog(backend, page_size=40)

        await catalog.fetch_first_page()

        assert len(catalog) == 40
        assert catalog.has_more

        await catalog.load_more()

        assert len(catalog) == 50
        assert not catalog.has_more
        assert [t.id for t in catalog.threads] == [t.id for t in backend.threads]

    @pytest.mark.asyncio
    async def test_opaque_cursor(self, backend, make_threads):
        """Cursors are passed back exactly as received."""
        threads = make_threads(50)
        backend.pages = {
            None: ThreadPage(threads=threads[:40], next_cursor="c1"),
            "c1": ThreadPage(threads=threads[40:], next_cursor=None),
        }
        catalog = ThreadCatalog(backend, page_size=40)

        await catalog.fetch_first_page()
        page = await catalog.fetch_next_page("c1")

        assert len(page.threads) == 10
        assert backend.calls[-1] == ("thread_list", (40, "c1"))
        assert len({t.id for t in catalog.threads}) == 50
        assert not catalog.has_more

    @pytest.mark.asyncio
    async def test_load_more_at_end_is_inert(self, backend, make_threads):
        """No cursor means no further fetch."""
        backend.threads = make_threads(10)
        catalog = ThreadCatalog(backend, page_size=40)
        await catalog.fetch_first_page()

        result = await catalog.load_more()

        assert result is None
        assert backend.count("thread_list") == 1

    @pytest.mark.asyncio
    async def test_load_more_before_first_page(self, backend):
        """Nothing to continue before a session started."""
        catalog = ThreadCatalog(backend)

        assert not catalog.has_more
        assert await catalog.load_more() is None
        assert backend.count("thread_list") == 0

    @pytest.mark.asyncio
    async def test_next_page_without_cursor(self, backend):
        """fetch_next_page(None) does nothing."""
        catalog = ThreadCatalog(backend)

        assert await catalog.fetch_next_page(None) is None
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_duplicates_dropped(self, backend, make_threads):
        """A thread repeated on a later page appears once."""
        a, b, c = make_threads(3)
        backend.pages = {
            None: ThreadPage(threads=[a, b], next_cursor="p2"),
            "p2": ThreadPage(threads=[b, c], next_cursor=None),
        }
        catalog = ThreadCatalog(backend, page_size=2)

        await catalog.fetch_first_page()
        await catalog.load_more()

        assert [t.id for t in catalog.threads] == [a.id, b.id, c.id]

    @pytest.mark.asyncio
    async def test_first_page_replaces_list(self, backend, make_threads):
        """Starting over replaces instead of appending."""
        backend.threads = make_threads(50)
        catalog = ThreadCatalog(backend, page_size=40)
        await catalog.fetch_first_page()
        await catalog.load_more()

        backend.threads = make_threads(5, prefix="new")
        await catalog.fetch_first_page()

        assert [t.id for t in catalog.threads] == [f"new-{i}" for i in range(5)]
        assert not catalog.has_more

    @pytest.mark.asyncio
    async def test_camel_case_page(self, backend):
        """Pages in the AI session's wire shape validate."""
        page = ThreadPage.model_validate({
            "threads": [{"id": "t-1", "updatedAt": 1000, "sourceKind": "cli"}],
            "nextCursor": "abc",
        })

        assert page.next_cursor == "abc"
        assert page.threads[0].updated_at == 1000
        assert page.threads[0].source_kind == "cli"


class TestErrors:
    """Test failure handling."""

    @pytest.mark.asyncio
    async def test_error_keeps_loaded_threads(self, backend, make_threads):
        """A failed next page leaves the list and cursor alone."""
        backend.threads = make_threads(50)
        catalog = ThreadCatalog(backend, page_size=40)
        await catalog.fetch_first_page()

        backend.fail("thread_list", TransportUnavailable("refused"))
        result = await catalog.load_more()

        assert result is None
        assert len(catalog) == 40
        assert catalog.has_more
        assert "refused" in catalog.error

        backend.recover()
        await catalog.load_more()

        assert len(catalog) == 50
        assert catalog.error is None

    @pytest.mark.asyncio
    async def test_first_page_error(self, backend):
        """A failed first page reports the error and loads nothing."""
        backend.fail("thread_list", TransportUnavailable("refused"))
        catalog = ThreadCatalog(backend)

        assert await catalog.fetch_first_page() is None
        assert not catalog.loaded
        assert catalog.error is not None


class TestConcurrency:
    """Test in-flight guards."""

    @pytest.mark.asyncio
    async def test_same_cursor_fetched_once(self, backend, make_threads):
        """Double "load more" issues a single request."""
        backend.threads = make_threads(50)
        catalog = ThreadCatalog(backend, page_size=40)
        await catalog.fetch_first_page()
        release = backend.hold("thread_list", "40")

        first = asyncio.create_task(catalog.load_more())
        await asyncio.sleep(0)
        assert catalog.busy
        second = await catalog.load_more()
        release.set()
        await first

        assert second is None
        assert backend.count("thread_list") == 2
        assert len(catalog) == 50

    @pytest.mark.asyncio
    async def test_stale_page_discarded_after_restart(self, backend, make_threads):
        """A next page from an older session is not appended."""
        backend.threads = make_threads(50)
        catalog = ThreadCatalog(backend, page_size=40)
        await catalog.fetch_first_page()
        release = backend.hold("thread_list", "40")

        pending = asyncio.create_task(catalog.load_more())
        await asyncio.sleep(0)
        await catalog.fetch_first_page()
        release.set()

        assert await pending is None
        assert len(catalog) == 40
        assert len({t.id for t in catalog.threads}) == 40
