"""Shared helpers for credential scopes, reading S3 XML and logging requests."""

from typing import Iterator, Optional
from xml.etree.ElementTree import Element

# Headers whose values must never reach logs
REDACTED_HEADERS = ("authorization", "x-amz-security-token")

SERVICE = "s3"
TERMINATOR = "aws4_request"


def credential_scope(date: str, region: str) -> str:
    """Build the ``date/region/s3/aws4_request`` credential scope."""
    return f"{date}/{region}/{SERVICE}/{TERMINATOR}"


def local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tag names."""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def find_elements(document: Element, name: str) -> Iterator[Element]:
    """Yield every element named ``name`` in document order, root included.

    Matching ignores namespaces, so S3's default
    ``http://s3.amazonaws.com/doc/2006-03-01/`` namespace is transparent.
    """
    for element in document.iter():
        if isinstance(element.tag, str) and local_name(element.tag) == name:
            yield element


def find_element(document: Element, name: str) -> Optional[Element]:
    """Return the first element named ``name``, or None."""
    return next(find_elements(document, name), None)


def find_text(document: Element, name: str, default: str = "") -> str:
    """Return the text content of the first element named ``name``."""
    element = find_element(document, name)
    if element is None:
        return default
    return "".join(element.itertext())


def format_request_info(
    method: str,
    url: str,
    headers: dict,
) -> dict:
    """Format request information for logging.

    Credential-bearing headers are replaced with ``[REDACTED]``.

    Args:
        method: HTTP method
        url: Request URL
        headers: Request headers

    Returns:
        dict with formatted request info
    """
    safe_headers = {}
    for key, value in dict(headers).items():
        if key.lower() in REDACTED_HEADERS:
            safe_headers[key] = "[REDACTED]"
        else:
            safe_headers[key] = value
    return {
        "method": method,
        "url": url,
        "headers": safe_headers,
    }
