"""Error types and S3 error-document detection.

Every failure raised by this package derives from :class:`S3SigV4Error`:

- :class:`ConfigError` for missing credentials or cryptographic providers,
- :class:`TransportError` for I/O failures reading payloads or responses,
- :class:`ProtocolError` for ``<Error>`` documents returned by the server.

None of these are retried here; retry policy belongs to the caller.
"""

from dataclasses import dataclass
from xml.etree.ElementTree import Element

from s3_sigv4.utils import find_element, find_text


class S3SigV4Error(Exception):
    """Base class for all errors raised by s3_sigv4."""


class ConfigError(S3SigV4Error, ValueError):
    """Fatal configuration problem (credentials, endpoints, crypto providers)."""


class TransportError(S3SigV4Error):
    """Failure reading a payload stream or a response body."""


@dataclass(frozen=True)
class ErrorResponse:
    """Fields of an S3 error response.

    Missing fields are empty strings, never None.
    """

    code: str = ""
    message: str = ""
    resource: str = ""
    request_id: str = ""
    host_id: str = ""


class ProtocolError(S3SigV4Error):
    """Error reported by the storage service in an ``<Error>`` document.

    The server's code and message are preserved verbatim, so callers can
    branch on ``error.code`` (e.g. ``"NoSuchBucket"``).
    """

    def __init__(
        self,
        code: str = "",
        message: str = "",
        resource: str = "",
        request_id: str = "",
        host_id: str = "",
    ):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.resource = resource
        self.request_id = request_id
        self.host_id = host_id

    @property
    def response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            resource=self.resource,
            request_id=self.request_id,
            host_id=self.host_id,
        )

    @classmethod
    def from_response(cls, response: ErrorResponse) -> "ProtocolError":
        return cls(
            code=response.code,
            message=response.message,
            resource=response.resource,
            request_id=response.request_id,
            host_id=response.host_id,
        )

    @classmethod
    def from_document(cls, document: Element) -> "ProtocolError":
        """Build the error from a parsed ``<Error>`` document."""
        return cls.from_response(parse_error(document))


def is_error(document: Element) -> bool:
    """Return True if the document is, or contains, an ``Error`` element."""
    return find_element(document, "Error") is not None


def parse_error(document: Element) -> ErrorResponse:
    """Read the first ``Code``, ``Message``, ``Resource``, ``RequestId`` and
    ``HostId`` elements of an error document.

    Args:
        document: Root element of the parsed response

    Returns:
        ErrorResponse with empty strings for absent elements
    """
    return ErrorResponse(
        code=find_text(document, "Code"),
        message=find_text(document, "Message"),
        resource=find_text(document, "Resource"),
        request_id=find_text(document, "RequestId"),
        host_id=find_text(document, "HostId"),
    )
