"""Chunk-by-chunk signing of streamed request bodies.

Each 16 KiB chunk read from the source is framed as::

    <hex length>;chunk-signature=<64 hex chars>\\r\\n<payload>\\r\\n

and its signature chains on the previous one, starting from the signature of
the request itself. A final zero-length frame, also signed, ends the body.
"""

import io
import logging
from typing import TYPE_CHECKING, BinaryIO

from s3_sigv4.errors import TransportError
from s3_sigv4.utils import credential_scope

if TYPE_CHECKING:
    from s3_sigv4.signing import Signer

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024
CHUNK_ALGORITHM = "AWS4-HMAC-SHA256-PAYLOAD"
SIGNATURE_PREFIX = b";chunk-signature="
CRLF = b"\r\n"
SIGNATURE_HEX_LENGTH = 64


def signed_length(size: int) -> int:
    """Return how many bytes a :class:`SignedStream` emits for ``size`` bytes.

    Use this for ``Content-Length`` of a chunk-signed upload.
    """
    if size < 0:
        raise ValueError(f"Stream size must not be negative: {size}")
    frame_overhead = len(SIGNATURE_PREFIX) + SIGNATURE_HEX_LENGTH + 2 * len(CRLF)
    total = 0
    while size > 0:
        payload = min(CHUNK_SIZE, size)
        total += len(format(payload, "x")) + frame_overhead + payload
        size -= payload
    # terminal frame: "0" + prefix + signature + CRLF + CRLF
    return total + 1 + frame_overhead


class SignedStream(io.RawIOBase):
    """Readable stream emitting the aws-chunked signed encoding of ``source``.

    Strictly forward and single pass: at most one encoded frame is buffered,
    and chunk n is signed only after chunk n-1.
    """

    def __init__(
        self,
        source: BinaryIO,
        signer: "Signer",
        now: str,
        region: str,
        string_to_sign: str,
    ):
        super().__init__()
        self._source = source
        self._signer = signer
        self._now = now
        self._scope = credential_scope(now[:8], region)

        self._signing_key = signer.signing_key(now[:8])
        self._previous = signer.hmac(self._signing_key, string_to_sign)

        self._buffer = b""
        self._position = 0
        self._finished = False
        self._chunks = 0

    @property
    def previous_signature(self) -> str:
        """Hex signature of the most recently emitted frame (or the seed)."""
        return self._previous.hex()

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._position >= len(self._buffer) and not self._refill():
            return 0
        count = min(len(buffer), len(self._buffer) - self._position)
        buffer[:count] = self._buffer[self._position:self._position + count]
        self._position += count
        return count

    def close(self) -> None:
        if not self.closed:
            self._source.close()
            self._signer.release()
        super().close()

    def _refill(self) -> bool:
        """Encode the next frame into the buffer.

        Returns:
            False once the terminal frame has been fully read
        """
        if self._finished:
            return False

        payload = self._read_chunk()
        if not payload:
            self._finished = True
        self._buffer = self._frame(payload)
        self._position = 0
        return True

    def _read_chunk(self) -> bytes:
        parts = []
        remaining = CHUNK_SIZE
        while remaining > 0:
            try:
                data = self._source.read(remaining)
            except OSError as exc:
                raise TransportError(
                    f"Failed to read chunk {self._chunks} of signed stream"
                ) from exc
            if not data:
                break
            parts.append(data)
            remaining -= len(data)
        return b"".join(parts)

    def _frame(self, payload: bytes) -> bytes:
        payload_hash = self._signer.sha256(payload).hex()
        string_to_sign = "\n".join(
            [
                CHUNK_ALGORITHM,
                self._now,
                self._scope,
                self._previous.hex(),
                payload_hash,
            ]
        )
        signature = self._signer.hmac(self._signing_key, string_to_sign)
        self._previous = signature
        self._chunks += 1

        logger.debug("Signed chunk %d (%d bytes)", self._chunks, len(payload))
        header = f"{len(payload):x}".encode("ascii") + SIGNATURE_PREFIX
        return b"".join([header, signature.hex().encode("ascii"), CRLF, payload, CRLF])
