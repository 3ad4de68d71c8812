"""Lazy iteration over paginated S3 XML listings.

A :class:`Paginator` sends one signed GET per page, parses the XML body and
hands out items one at a time through a caller-supplied reader. A page is
followed by another as long as it carries a continuation-token element, whose
name depends on the endpoint (``ContinuationToken`` for ListBuckets,
``NextContinuationToken`` for ListObjectsV2).
"""

import enum
import logging
import threading
from concurrent.futures import Executor, Future
from typing import Callable, Generic, Iterator, Optional, TypeVar
from xml.etree import ElementTree as ET
from xml.etree.ElementTree import Element

import requests

from s3_sigv4.errors import ProtocolError, TransportError, is_error
from s3_sigv4.signing import Signer
from s3_sigv4.utils import find_element, format_request_info

logger = logging.getLogger(__name__)

T = TypeVar("T")

Measurer = Callable[[Element], int]
Reader = Callable[[Element, int], T]

CONTINUATION_PARAM = "continuation-token"


class PaginatorState(enum.Enum):
    """Lifecycle of a paginator's page cursor."""

    NOT_STARTED = "not_started"
    BUFFERED = "buffered"
    EXHAUSTED = "exhausted"


class Paginator(Generic[T]):
    """Single-direction, pull-based cursor over the items of a listing.

    Args:
        signer: Signer used for every page request
        session: requests session that sends the page requests
        request: Prepared GET request template; each page works on a copy
        continuation: Name of the continuation-token element in responses
        measurer: Returns the number of items in a page document
        reader: Returns the item at an index of a page document
        limit_param: Query parameter capping the page size
        limit: Page size cap
        executor: Runs page fetches for :meth:`next_future`; without one,
            each fetch gets its own worker thread

    One consumer only: calls to ``next``/``next_future`` must not overlap.
    """

    def __init__(
        self,
        signer: Signer,
        session: requests.Session,
        request: requests.PreparedRequest,
        continuation: str,
        measurer: Measurer,
        reader: Reader,
        *,
        limit_param: str = "max-buckets",
        limit: int = 1000,
        executor: Optional[Executor] = None,
    ):
        self._signer = signer
        self._session = session
        self._request = request
        self._continuation = continuation
        self._measurer = measurer
        self._reader = reader
        self._limit_param = limit_param
        self._limit = limit
        self._executor = executor

        self.state = PaginatorState.NOT_STARTED
        self._document: Optional[Element] = None
        self._index = 0
        self._size = 0
        self.pages = 0

    def __iter__(self) -> "Paginator[T]":
        return self

    def has_next(self) -> bool:
        """Return True while items may remain.

        Before the first fetch this is always True, even for a listing that
        turns out to be empty; such a listing then ends after one fetch.
        """
        if self.state is PaginatorState.NOT_STARTED:
            return True
        if self.state is PaginatorState.EXHAUSTED:
            return False
        return self._index < self._size or self._token() is not None

    def __next__(self) -> T:
        if self._index < self._size:
            return self._read_buffered()
        return self._next_page()

    next = __next__

    def next_future(self) -> "Future[T]":
        """Non-blocking variant of :meth:`next`.

        Items of the buffered page come back as completed futures; a page
        fetch runs on the executor. Cancelling the future does not abort a
        request already in flight.
        """
        if self._index < self._size or self.state is PaginatorState.EXHAUSTED:
            future: Future = Future()
            try:
                future.set_result(self.__next__())
            except Exception as exc:
                future.set_exception(exc)
            return future

        if self._executor is not None:
            return self._executor.submit(self._next_page)

        future = Future()

        def run():
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self._next_page())
            except BaseException as exc:
                future.set_exception(exc)

        threading.Thread(target=run, name="s3-sigv4-page-fetch", daemon=True).start()
        return future

    def iter_futures(self) -> Iterator["Future[T]"]:
        """Yield futures of successive items.

        Each future settles before ``has_next`` is consulted again, so page
        fetches never overlap. A fetch that ends the listing is not yielded.
        """
        while self.has_next():
            future = self.next_future()
            error = future.exception()
            if isinstance(error, StopIteration):
                return
            yield future
            if error is not None:
                return

    def _read_buffered(self) -> T:
        if is_error(self._document):
            raise ProtocolError.from_document(self._document)
        item = self._reader(self._document, self._index)
        self._index += 1
        return item

    def _token(self) -> Optional[str]:
        if self._document is None:
            return None
        element = find_element(self._document, self._continuation)
        if element is None:
            return None
        return "".join(element.itertext())

    def _next_page(self) -> T:
        """Fetch pages until one has an item, and return that item."""
        while True:
            if self.state is PaginatorState.EXHAUSTED:
                raise StopIteration
            if self.state is PaginatorState.BUFFERED and self._token() is None:
                self._exhaust()
                raise StopIteration

            self._load(self._fetch(self._token()))
            if self._size > 0:
                return self._read_buffered()
            if self._token() is None:
                self._exhaust()
                raise StopIteration

    def _fetch(self, token: Optional[str]) -> bytes:
        request = self._request.copy()
        params = {self._limit_param: str(self._limit)}
        if token is not None:
            params[CONTINUATION_PARAM] = token
        request.prepare_url(request.url, params)

        with self._signer.acquire():
            self._signer.sign("GET", request, b"")

        logger.debug(
            "Fetching page %d: %s",
            self.pages + 1,
            format_request_info("GET", request.url, request.headers),
        )
        try:
            response = self._session.send(request)
            return response.content
        except requests.RequestException as exc:
            raise TransportError(
                f"Failed to fetch page {self.pages + 1} of paginated request"
            ) from exc

    def _load(self, body: bytes) -> None:
        try:
            document = ET.fromstring(body)
        except ET.ParseError as exc:
            raise TransportError(
                f"Failed to parse page {self.pages + 1} of paginated response"
            ) from exc

        self.pages += 1
        self._document = document
        self.state = PaginatorState.BUFFERED
        if is_error(document):
            self._size = 0
            self._index = 0
            raise ProtocolError.from_document(document)

        self._size = self._measurer(document)
        self._index = 0
        logger.debug(
            "Page %d holds %d items (more pages: %s)",
            self.pages,
            self._size,
            self._token() is not None,
        )

    def _exhaust(self) -> None:
        self.state = PaginatorState.EXHAUSTED
        self._document = None
        self._index = 0
        self._size = 0
