"""SigV4 signing utilities for S3 requests.

Only three headers are ever signed, always in this order::

    host;x-amz-content-sha256;x-amz-date

Digest and HMAC handles are cached per thread. A thread acquires its handles
lazily on first use (or explicitly with :meth:`Signer.acquire`) and drops them
with :meth:`Signer.release`; handles are never shared between threads.
"""

import hashlib
import hmac
import logging
import threading
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Optional, Union
from urllib.parse import SplitResult, parse_qsl, unquote, urlsplit

import boto3
import requests
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError
from botocore.session import Session

from s3_sigv4.errors import ConfigError
from s3_sigv4.streaming import SignedStream, signed_length
from s3_sigv4.utils import SERVICE, TERMINATOR, credential_scope, format_request_info

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
DIGEST_ALGORITHM = "sha256"
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"
STREAMING_PAYLOAD = "STREAMING-AWS4-HMAC-SHA256-PAYLOAD"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
DEFAULT_REGION = "us-east-1"

_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def get_credentials(profile_name: str = "aws") -> Optional[Credentials]:
    """Get AWS credentials from profile.

    Tries boto3 first, falls back to botocore Session.
    """
    try:
        session = boto3.Session(profile_name=profile_name)
        credentials = session.get_credentials()
        if credentials:
            return credentials
    except BotoCoreError as exc:
        logger.debug("boto3 could not load profile %r: %s", profile_name, exc)

    # Fallback to botocore Session
    try:
        session = Session(profile=profile_name)
        return session.get_credentials()
    except BotoCoreError as exc:
        logger.debug("botocore could not load profile %r: %s", profile_name, exc)
        return None


def derive_signing_key(
    secret: str,
    date: str,
    region: str,
    mac: Optional[Callable[[bytes, Union[str, bytes]], bytes]] = None,
) -> bytes:
    """Derive the SigV4 signing key for the S3 service.

    Args:
        secret: Secret access key
        date: Date string (YYYYMMDD)
        region: Region name
        mac: HMAC-SHA256 function; defaults to a fresh set of handles

    Returns:
        Derived signing key bytes

    Raises:
        ConfigError: SHA-256 or HMAC-SHA256 is unavailable
    """
    if mac is None:
        mac = _Provider().hmac
    date_key = mac(("AWS4" + secret).encode("utf-8"), date)
    region_key = mac(date_key, region)
    service_key = mac(region_key, SERVICE)
    return mac(service_key, TERMINATOR)


def amz_date(moment: Optional[datetime] = None) -> str:
    """Format a moment (default: now) as an ``x-amz-date`` timestamp."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _uri_encode(value: str, encode_slash: bool = True) -> str:
    """Percent-encode everything outside the AWS unreserved set."""
    result = []
    for ch in value:
        if ch in _AWS_UNRESERVED or (ch == "/" and not encode_slash):
            result.append(ch)
        else:
            result.extend(f"%{byte:02X}" for byte in ch.encode("utf-8"))
    return "".join(result)


def canonical_path(path: str) -> str:
    """Build the canonical URI of an S3 request.

    S3 is single-encoded: existing escapes are decoded once, then the path is
    encoded again.
    """
    if not path:
        return "/"
    return _uri_encode(unquote(path), encode_slash=False)


def canonical_query_string(query: str) -> str:
    """Re-encode query parameters and sort them by their full ``key=value`` string.

    Keys and values are decoded once and encoded again the AWS way: a space
    is ``%20`` and ``/`` is ``%2F``. A bare key (``?lifecycle``) becomes
    ``lifecycle=``.
    """
    if not query:
        return ""
    params = [
        f"{_uri_encode(key)}={_uri_encode(value)}"
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return "&".join(sorted(params))


def canonical_host(parts: SplitResult) -> str:
    """Host as signed, matching the Host header the HTTP client sends.

    IPv6 literals keep their brackets and the scheme's default port is left
    out.
    """
    host = parts.hostname
    if not host:
        raise ConfigError(f"Request URL has no host: {parts.geturl()}")
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        return f"{host}:{port}"
    return host


def build_canonical_request(
    method: str, url: str, payload_hash: str, now: str
) -> str:
    """Build the canonical request string.

    Args:
        method: HTTP method
        url: Full request URL, query string included
        payload_hash: Value of x-amz-content-sha256
        now: Value of x-amz-date

    Returns:
        Canonical request string
    """
    parts = urlsplit(url)
    return "\n".join(
        [
            method,
            canonical_path(parts.path),
            canonical_query_string(parts.query),
            "host:" + canonical_host(parts),
            "x-amz-content-sha256:" + payload_hash,
            "x-amz-date:" + now,
            "",
            SIGNED_HEADERS,
            payload_hash,
        ]
    )


class _Provider:
    """SHA-256 digest and HMAC-SHA256 handles owned by one thread."""

    def __init__(self):
        try:
            self._digest = hashlib.new(DIGEST_ALGORITHM)
            hmac.new(b"", digestmod=DIGEST_ALGORITHM)
        except ValueError as exc:
            raise ConfigError(
                f"Failed to obtain {DIGEST_ALGORITHM} digest/HMAC for signer"
            ) from exc

    def sha256(self, data: bytes) -> bytes:
        digest = self._digest.copy()
        digest.update(data)
        return digest.digest()

    def hmac(self, key: bytes, data: Union[str, bytes]) -> bytes:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hmac.new(key, data, DIGEST_ALGORITHM).digest()


class ProviderCache:
    """Map of thread identity to that thread's cryptographic handles."""

    def __init__(self):
        self._providers: dict[int, _Provider] = {}
        self._lock = threading.Lock()

    def acquire(self) -> _Provider:
        """Return the calling thread's handles, creating them if needed."""
        ident = threading.get_ident()
        with self._lock:
            provider = self._providers.get(ident)
            if provider is None:
                provider = _Provider()
                self._providers[ident] = provider
            return provider

    def release(self) -> None:
        """Drop the calling thread's handles, if any."""
        with self._lock:
            self._providers.pop(threading.get_ident(), None)

    def __contains__(self, ident: int) -> bool:
        with self._lock:
            return ident in self._providers

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)


class Signer:
    """Signs S3 requests with AWS Signature Version 4.

    Usage:
        signer = Signer(access_key, secret_key, "eu-west-1")
        with signer.acquire():
            signer.sign("GET", prepared_request)

    The region is ignored by most non-AWS S3 implementations, so
    ``us-east-1`` is a safe choice unless talking to AWS itself.
    """

    def __init__(self, access_key: str, secret_key: str, region: str = DEFAULT_REGION):
        if not access_key or not secret_key:
            raise ConfigError("No credentials provided to signer")
        self.access_key = access_key
        self._secret_key = secret_key
        self.region = region
        self._providers = ProviderCache()

    def __repr__(self) -> str:
        return f"Signer(access_key={self.access_key!r}, region={self.region!r})"

    @classmethod
    def from_credentials(
        cls, credentials: Credentials, region: str = DEFAULT_REGION
    ) -> "Signer":
        """Create a signer from botocore credentials."""
        frozen = credentials.get_frozen_credentials()
        return cls(frozen.access_key, frozen.secret_key, region)

    def acquire(self) -> "Signer":
        """Acquire digest/HMAC handles for the calling thread.

        Raises:
            ConfigError: SHA-256 or HMAC-SHA256 is unavailable
        """
        self._providers.acquire()
        return self

    def release(self) -> None:
        """Release the calling thread's handles.

        The signer stays usable; the next operation acquires new handles.
        """
        self._providers.release()

    def __enter__(self) -> "Signer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def sha256(self, data: bytes) -> bytes:
        return self._providers.acquire().sha256(data)

    def hmac(self, key: bytes, data: Union[str, bytes]) -> bytes:
        return self._providers.acquire().hmac(key, data)

    def signing_key(self, date: str) -> bytes:
        """Derive the signing key for a YYYYMMDD date and this signer's region."""
        return derive_signing_key(self._secret_key, date, self.region, mac=self.hmac)

    def sign(
        self,
        method: str,
        request: requests.PreparedRequest,
        body: Union[str, bytes] = b"",
    ) -> None:
        """Sign a request whose whole body is known.

        An empty body still needs signing: its hash is the SHA-256 of b"".
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        payload_hash = self.sha256(body).hex()
        self.sign_with_hash(method, request, payload_hash, amz_date())

    def sign_stream(
        self,
        method: str,
        request: requests.PreparedRequest,
        stream: BinaryIO,
        size: Optional[int] = None,
    ) -> SignedStream:
        """Sign a request for a chunk-signed streaming upload.

        Returns a wrapped stream that signs each chunk as it is read. When
        ``size`` is known the aws-chunked framing headers are set as well.
        """
        now = amz_date()
        string_to_sign = self.sign_with_hash(method, request, STREAMING_PAYLOAD, now)
        if size is not None:
            request.headers["Content-Encoding"] = "aws-chunked"
            request.headers["x-amz-decoded-content-length"] = str(size)
            request.headers["Content-Length"] = str(signed_length(size))
        return SignedStream(stream, self, now, self.region, string_to_sign)

    def sign_with_hash(
        self,
        method: str,
        request: requests.PreparedRequest,
        payload_hash: str,
        now: str,
    ) -> str:
        """Sign the request with the given payload hash and timestamp.

        Sets ``x-amz-content-sha256``, ``x-amz-date`` and ``Authorization``.

        Returns:
            The string-to-sign, which seeds chunk signing for streams
        """
        date = now[:8]
        request.headers["x-amz-content-sha256"] = payload_hash
        request.headers["x-amz-date"] = now

        canonical = build_canonical_request(method, request.url, payload_hash, now)
        canonical_hash = self.sha256(canonical.encode("utf-8")).hex()

        scope = credential_scope(date, self.region)
        string_to_sign = "\n".join([ALGORITHM, now, scope, canonical_hash])
        signature = self.hmac(self.signing_key(date), string_to_sign).hex()

        request.headers["Authorization"] = (
            f"{ALGORITHM} Credential={self.access_key}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        )
        logger.debug("Signed request %s", format_request_info(method, request.url, request.headers))
        return string_to_sign
