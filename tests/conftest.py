"""Test-level fixtures and utilities."""

from typing import Union

import pytest
import requests


class FakeResponse:
    """Stands in for requests.Response; only the body is read."""

    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code


class FakeSession:
    """requests.Session replacement serving canned bodies in order."""

    def __init__(self, bodies: list[Union[str, bytes, Exception]]):
        self._bodies = list(bodies)
        self.requests: list[requests.PreparedRequest] = []

    def send(self, request, **kwargs):
        self.requests.append(request)
        body = self._bodies.pop(0)
        if isinstance(body, Exception):
            raise body
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FakeResponse(body)


@pytest.fixture
def make_session():
    """Factory fixture for fake sessions."""

    def _make(*bodies):
        return FakeSession(list(bodies))

    return _make


@pytest.fixture
def get_request():
    """Factory fixture for prepared GET requests."""

    def _get(url: str) -> requests.PreparedRequest:
        return requests.Request("GET", url).prepare()

    return _get


def _page(*items: str, token: str = None, token_name: str = "ContinuationToken") -> str:
    parts = ['<Result xmlns="http://s3.amazonaws.com/doc/2006-03-01/">']
    parts.extend(f"<Item>{item}</Item>" for item in items)
    if token is not None:
        parts.append(f"<{token_name}>{token}</{token_name}>")
    parts.append("</Result>")
    return "".join(parts)


def _error_document(
    code="NoSuchBucket", message="m", resource="r", request_id="id1", host_id="id2"
) -> str:
    return (
        "<Error>"
        f"<Code>{code}</Code>"
        f"<Message>{message}</Message>"
        f"<Resource>{resource}</Resource>"
        f"<RequestId>{request_id}</RequestId>"
        f"<HostId>{host_id}</HostId>"
        "</Error>"
    )


@pytest.fixture
def make_page():
    """Factory fixture for listing pages of <Item> elements."""
    return _page


@pytest.fixture
def make_error():
    """Factory fixture for S3 <Error> documents."""
    return _error_document
