"""SigV4 request signing, chunk-signed streaming and paginated listing for S3"""

from s3_sigv4.errors import (
    S3SigV4Error,
    ConfigError,
    TransportError,
    ProtocolError,
    ErrorResponse,
    is_error,
    parse_error,
)
from s3_sigv4.signing import Signer, derive_signing_key, get_credentials
from s3_sigv4.streaming import SignedStream, signed_length
from s3_sigv4.paginator import Paginator, PaginatorState
from s3_sigv4.listing import Bucket, ObjectSummary, list_buckets, list_objects
from s3_sigv4.client import S3ClientFactory, EndpointConfig

__all__ = [
    # Errors
    "S3SigV4Error",
    "ConfigError",
    "TransportError",
    "ProtocolError",
    "ErrorResponse",
    "is_error",
    "parse_error",
    # Signing
    "Signer",
    "derive_signing_key",
    "get_credentials",
    # Streaming
    "SignedStream",
    "signed_length",
    # Pagination
    "Paginator",
    "PaginatorState",
    # Listing
    "Bucket",
    "ObjectSummary",
    "list_buckets",
    "list_objects",
    # Client
    "S3ClientFactory",
    "EndpointConfig",
]
