"""
Webhook Piece Transport

Design Decision: Transport
==========================

Pieces and manifests live as messages posted through a Discord-style
webhook:

```
POST {endpoint}?wait=true          multipart, field "file"   -> message
POST {endpoint}?wait=true          JSON {"content": "..."}   -> message
GET  {endpoint}/messages/{id}                                -> message
GET  {attachment.url}                                        -> raw bytes
```

A message looks like:
{
    "id": "1190...",
    "content": "...",
    "attachments": [{"id": "...", "filename": "000_a.bin", "url": "...", "size": 123}]
}

The message id is the opaque handle for whatever was posted.

Decision: httpx.AsyncClient
- Async, so many piece transfers share one event loop
- Pluggable transports (MockTransport / ASGITransport) for tests
- Streaming responses let us check that a body arrived complete

Failures are never retried here; every one becomes a TransportError and
the orchestrators decide what that means for the whole file.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
import pydantic

from ..config import TransportConfig
from ..errors import TransportError
from ..file.chunker import parse_piece_index
from ..file.manifest import Manifest, decode_manifest, encode_manifest

logger = logging.getLogger(__name__)


# === Wire Models ===

class WebhookAttachment(pydantic.BaseModel):
    """An attachment on a webhook message."""
    model_config = pydantic.ConfigDict(extra='ignore')

    id: Optional[str] = None
    filename: str
    url: str
    size: Optional[int] = None


class WebhookMessage(pydantic.BaseModel):
    """The subset of a webhook message we rely on."""
    model_config = pydantic.ConfigDict(extra='ignore')

    id: str
    content: str = ""
    attachments: List[WebhookAttachment] = pydantic.Field(default_factory=list)


@dataclass(frozen=True)
class PieceRef:
    """Where a stored piece can be fetched from."""
    handle: str
    file_name: str
    url: str
    size: Optional[int] = None

    @property
    def index(self) -> int:
        return parse_piece_index(self.file_name)


class PieceTransportClient:
    """
    Stores and fetches pieces and manifests through a webhook.

    Each method maps to exactly one webhook operation (get_piece to two).
    The client can be used as an async context manager; an http_client
    passed in is not closed by it.
    """

    def __init__(self, config: TransportConfig,
                 http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the transport client.

        Args:
            config: Transport configuration
            http_client: Pre-built client (tests inject mock transports here)
        """
        self.config = config
        self.endpoint = config.endpoint
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> 'PieceTransportClient':
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self.http.aclose()

    # === Pieces ===

    async def put_piece(self, data: bytes, name: str) -> str:
        """
        Post one piece as an attachment.

        Returns:
            The message id (piece handle)
        """
        files = {'file': (name, data, 'application/octet-stream')}
        message = await self._post_message(files=files, what=f"piece {name}")
        logger.debug(f"Stored piece {name} ({len(data):,} bytes) as {message.id}")
        return message.id

    async def lookup_piece(self, handle: str) -> PieceRef:
        """Resolve a piece handle to its display name and download URL."""
        message = await self._get_message(handle, what=f"piece {handle}")
        if not message.attachments:
            raise TransportError(f"Message {handle} has no attachment")

        attachment = message.attachments[0]
        return PieceRef(
            handle=handle,
            file_name=attachment.filename,
            url=attachment.url,
            size=attachment.size,
        )

    async def fetch_piece(self, ref: PieceRef) -> bytes:
        """
        Download a piece's bytes in full.

        A body that ends early (shorter than Content-Length or than the
        attachment's advertised size) is an error, never a short piece.
        """
        try:
            async with self.http.stream('GET', ref.url) as response:
                if not response.is_success:
                    await response.aread()
                    raise self._status_error(response, f"fetch piece {ref.file_name}")

                data = await response.aread()
                received = response.num_bytes_downloaded
                expected = response.headers.get('content-length')
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to fetch piece {ref.file_name}: {e}") from e

        if expected is not None and expected.isdigit() and received < int(expected):
            raise TransportError(
                f"Piece {ref.file_name} truncated: got {received} of {expected} bytes"
            )
        if ref.size is not None and len(data) != ref.size:
            raise TransportError(
                f"Piece {ref.file_name} truncated: got {len(data)} of {ref.size} bytes"
            )

        logger.debug(f"Fetched piece {ref.file_name} ({len(data):,} bytes)")
        return data

    async def get_piece(self, handle: str) -> bytes:
        """Lookup and fetch one piece by handle."""
        ref = await self.lookup_piece(handle)
        return await self.fetch_piece(ref)

    # === Manifests ===

    async def put_manifest(self, manifest: Manifest) -> str:
        """
        Post a manifest as message text.

        Returns:
            The message id (primary handle)
        """
        payload = {'content': encode_manifest(manifest)}
        message = await self._post_message(json=payload, what=f"manifest for {manifest.file_name}")
        logger.debug(f"Stored manifest for {manifest.file_name} as {message.id}")
        return message.id

    async def get_manifest(self, handle: str) -> Manifest:
        """
        Fetch and decode a manifest.

        Raises:
            TransportError: If the message cannot be fetched
            ManifestError: If its content is not a valid manifest
        """
        message = await self._get_message(handle, what=f"manifest {handle}")
        return decode_manifest(message.content)

    # === Internals ===

    async def _post_message(self, what: str, **kwargs) -> WebhookMessage:
        try:
            response = await self.http.post(self.endpoint, params={'wait': 'true'}, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to store {what}: {e}") from e

        return self._parse_message(response, f"store {what}")

    async def _get_message(self, handle: str, what: str) -> WebhookMessage:
        try:
            response = await self.http.get(f"{self.endpoint}/messages/{handle}")
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to look up {what}: {e}") from e

        return self._parse_message(response, f"look up {what}")

    def _parse_message(self, response: httpx.Response, action: str) -> WebhookMessage:
        if not response.is_success:
            raise self._status_error(response, action)

        try:
            return WebhookMessage.model_validate_json(response.content)
        except pydantic.ValidationError as e:
            raise TransportError(
                f"Could not {action}: unexpected response body ({e.error_count()} errors)",
                status_code=response.status_code,
            ) from e

    def _status_error(self, response: httpx.Response, action: str) -> TransportError:
        retry_after = None
        if response.status_code == 429:
            retry_after = _retry_after(response)
            logger.warning(f"Rate limited trying to {action}; retry after {retry_after}s")

        detail = response.text[:200] if response.text else response.reason_phrase
        return TransportError(
            f"Could not {action}: HTTP {response.status_code} {detail}",
            status_code=response.status_code,
            retry_after=retry_after,
        )


def _retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds to wait from a 429 body ('retry_after') or Retry-After header."""
    try:
        value = response.json().get('retry_after')
        if value is not None:
            return float(value)
    except (AttributeError, TypeError, ValueError):
        pass

    header = response.headers.get('retry-after')
    try:
        return float(header) if header is not None else None
    except ValueError:
        return None
