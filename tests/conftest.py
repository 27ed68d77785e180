"""Shared pytest fixtures for all tests."""

import asyncio
import itertools
from typing import Callable, Dict, List, Optional, Set, Tuple

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from disfile.config import TransportConfig

ENDPOINT = 'https://discord.fake.test/api/webhooks/123/token-abc'
CDN = 'https://cdn.fake.test'


class FakeWebhook:
    """
    In-memory stand-in for a Discord webhook.

    Stores posted attachments and text messages, serves them back by id,
    and can be told to fail, hang, delay or truncate specific pieces.
    """

    def __init__(self):
        self.messages: Dict[str, dict] = {}
        self.blobs: Dict[str, bytes] = {}
        self.requests: List[Tuple[str, str]] = []
        self._ids = itertools.count(1190000000000000001)

        # Failure injection, keyed by attachment display name
        self.fail_uploads: Set[str] = set()
        self.fail_fetches: Set[str] = set()
        self.truncate_fetches: Set[str] = set()
        self.hang_uploads = False
        self.fetch_delay: Optional[Callable[[str], float]] = None
        self.completed_fetches: List[str] = []

        self.app = self._build_app()

    @property
    def piece_uploads(self) -> List[str]:
        return [m['attachments'][0]['filename'] for m in self.messages.values()
                if m['attachments']]

    def _new_message(self, content: str = '', attachments: list = None) -> dict:
        message_id = str(next(self._ids))
        message = {
            'id': message_id,
            'channel_id': '42',
            'content': content,
            'attachments': attachments or [],
        }
        self.messages[message_id] = message
        return message

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        fake = self

        @app.post('/api/webhooks/{webhook_id}/{token}')
        async def execute_webhook(webhook_id: str, token: str, request: Request):
            fake.requests.append(('POST', request.url.path))
            content_type = request.headers.get('content-type', '')

            if content_type.startswith('multipart/form-data'):
                form = await request.form()
                upload = form['file']
                name = upload.filename
                data = await upload.read()

                if name in fake.fail_uploads:
                    return JSONResponse({'message': 'Internal Server Error', 'code': 0},
                                        status_code=500)
                if fake.hang_uploads:
                    await asyncio.sleep(3600)

                message_id = str(next(fake._ids))
                fake.blobs[message_id] = data
                attachment = {
                    'id': message_id,
                    'filename': name,
                    'size': len(data),
                    'url': f"{CDN}/attachments/{message_id}/{name}",
                }
                message = {
                    'id': message_id,
                    'channel_id': '42',
                    'content': '',
                    'attachments': [attachment],
                }
                fake.messages[message_id] = message
                return JSONResponse(message)

            payload = await request.json()
            return JSONResponse(fake._new_message(content=payload.get('content', '')))

        @app.get('/api/webhooks/{webhook_id}/{token}/messages/{message_id}')
        async def get_message(webhook_id: str, token: str, message_id: str, request: Request):
            fake.requests.append(('GET', request.url.path))
            message = fake.messages.get(message_id)
            if message is None:
                return JSONResponse({'message': 'Unknown Message', 'code': 10008},
                                    status_code=404)
            return JSONResponse(message)

        @app.get('/attachments/{message_id}/{filename}')
        async def get_attachment(message_id: str, filename: str, request: Request):
            fake.requests.append(('GET', request.url.path))
            if fake.fetch_delay is not None:
                await asyncio.sleep(fake.fetch_delay(filename))
            if filename in fake.fail_fetches:
                return Response(status_code=503)

            data = fake.blobs[message_id]
            if filename in fake.truncate_fetches:
                data = data[:len(data) // 2]

            fake.completed_fetches.append(filename)
            return Response(content=data, media_type='application/octet-stream')

        return app


@pytest.fixture
def fake_webhook():
    """Fresh fake webhook per test."""
    return FakeWebhook()


@pytest_asyncio.fixture
async def http_client(fake_webhook):
    """httpx client wired straight into the fake webhook app."""
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=fake_webhook.app))
    yield client
    await client.aclose()


@pytest.fixture
def config():
    """
    Small-chunk, unpaced configuration.

    Returns:
        TransportConfig with 10-byte pieces and no pacing delay
    """
    return TransportConfig(
        endpoint=ENDPOINT,
        chunk_size=10,
        max_concurrent_uploads=4,
        max_concurrent_downloads=4,
        pacing_delay=0,
        request_timeout=5.0,
    )


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample binary file spanning several 10-byte pieces.

    Returns:
        Path to a 25-byte file holding bytes 0..24
    """
    file_path = tmp_path / 'sample.bin'
    file_path.write_bytes(bytes(range(25)))
    return file_path
