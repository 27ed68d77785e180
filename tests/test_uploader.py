"""Unit tests for PayloadUploader."""

import asyncio
import io
import time

import pytest

from disfile.errors import ChunkerError, PartialUploadError, TransportError, ValidationError
from disfile.transfer.uploader import PayloadUploader
from disfile.transfer.webhook import PieceTransportClient


@pytest.fixture
def uploader(config, http_client):
    """Uploader talking to the fake webhook."""
    return PayloadUploader(PieceTransportClient(config, http_client=http_client), config)


@pytest.mark.asyncio
async def test_upload_names_pieces_and_writes_manifest(uploader, fake_webhook):
    """Test pieces are named NNN_<name> and the manifest lists them in order."""
    result = await uploader.upload(bytes(range(25)), 'data.bin')

    assert sorted(fake_webhook.piece_uploads) == ['000_data.bin', '001_data.bin', '002_data.bin']
    assert result.file_name == 'data.bin'
    assert len(result.file_chunk_ids) == 3

    manifest = await uploader.client.get_manifest(result.primary_id)
    assert manifest.file_name == 'data.bin'
    assert manifest.ids == result.file_chunk_ids

    names = [fake_webhook.messages[h]['attachments'][0]['filename'] for h in result.file_chunk_ids]
    assert names == ['000_data.bin', '001_data.bin', '002_data.bin']


@pytest.mark.asyncio
async def test_ids_ordered_by_index_not_completion(config, http_client, fake_webhook):
    """Test handles are ordered by piece index even if uploads finish reversed."""
    client = PieceTransportClient(config, http_client=http_client)
    original_put = client.put_piece

    async def slow_early_pieces(data, name):
        index = int(name.split('_')[0])
        await asyncio.sleep(0.02 * (4 - index))
        return await original_put(data, name)

    client.put_piece = slow_early_pieces
    result = await PayloadUploader(client, config).upload(bytes(40), 'x.bin')

    names = [fake_webhook.messages[h]['attachments'][0]['filename'] for h in result.file_chunk_ids]
    assert names == ['000_x.bin', '001_x.bin', '002_x.bin', '003_x.bin']


@pytest.mark.asyncio
async def test_empty_payload_uploads_empty_manifest(uploader, fake_webhook):
    """Test zero-length payload stores only a manifest with no ids."""
    result = await uploader.upload(b'', 'empty.txt')

    assert result.file_chunk_ids == []
    assert fake_webhook.piece_uploads == []
    manifest = await uploader.client.get_manifest(result.primary_id)
    assert manifest.ids == []


@pytest.mark.asyncio
@pytest.mark.parametrize('file_name', ['', '   ', '\t\n', None])
async def test_blank_name_rejected_before_network(uploader, fake_webhook, file_name):
    """Test blank names fail validation with zero transport calls."""
    with pytest.raises(ValidationError):
        await uploader.upload(b'payload', file_name)

    assert fake_webhook.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize('source', [None, 'text payload', 123])
async def test_invalid_source_rejected_before_network(uploader, fake_webhook, source):
    """Test invalid byte sources fail validation with zero transport calls."""
    with pytest.raises(ValidationError):
        await uploader.upload(source, 'a.bin')

    assert fake_webhook.requests == []


@pytest.mark.asyncio
async def test_text_mode_file_rejected_before_network(uploader, fake_webhook, tmp_path):
    """Test a file opened in text mode fails validation with zero transport calls."""
    path = tmp_path / 'notes.txt'
    path.write_text('plain text')

    with open(path, 'r') as f:
        with pytest.raises(ValidationError):
            await uploader.upload(f, 'notes.txt')

    assert fake_webhook.requests == []


@pytest.mark.asyncio
async def test_piece_failure_raises_partial_upload_error(uploader, fake_webhook):
    """Test a failed piece upload aborts with PartialUploadError."""
    fake_webhook.fail_uploads.add('001_a.bin')

    with pytest.raises(PartialUploadError) as exc_info:
        await uploader.upload(bytes(30), 'a.bin')

    error = exc_info.value
    assert error.piece_index == 1
    assert error.piece_name == '001_a.bin'
    assert isinstance(error.__cause__, TransportError)
    # No manifest was written
    assert all(m['attachments'] for m in fake_webhook.messages.values())


@pytest.mark.asyncio
async def test_piece_failure_fails_fast(uploader, fake_webhook):
    """Test upload rejects without waiting for in-flight uploads that hang."""
    fake_webhook.fail_uploads.add('001_a.bin')
    fake_webhook.hang_uploads = True

    with pytest.raises(PartialUploadError):
        await asyncio.wait_for(uploader.upload(bytes(30), 'a.bin'), timeout=2)


@pytest.mark.asyncio
async def test_stream_source_uploaded_lazily(uploader, fake_webhook):
    """Test file objects are chunked and uploaded."""
    result = await uploader.upload(io.BytesIO(bytes(range(25))), 's.bin')

    assert len(result.file_chunk_ids) == 3


@pytest.mark.asyncio
async def test_source_error_surfaces_as_chunker_error(uploader):
    """Test a failing source aborts the upload with ChunkerError."""
    async def broken():
        yield b'first'
        raise OSError("read failed")

    with pytest.raises(ChunkerError):
        await uploader.upload(broken(), 'b.bin')


@pytest.mark.asyncio
async def test_manifest_failure_raises_transport_error(config, http_client):
    """Test a failed manifest post propagates as TransportError."""
    client = PieceTransportClient(config, http_client=http_client)

    async def reject_manifest(manifest):
        raise TransportError("manifest rejected", status_code=400)

    client.put_manifest = reject_manifest

    with pytest.raises(TransportError, match='manifest rejected'):
        await PayloadUploader(client, config).upload(bytes(15), 'm.bin')


@pytest.mark.asyncio
async def test_upload_stats(uploader):
    """Test uploader statistics."""
    await uploader.upload(bytes(25), 'a.bin')

    assert uploader.get_stats() == {
        'files_uploaded': 1,
        'pieces_uploaded': 3,
        'bytes_uploaded': 25,
    }


@pytest.mark.asyncio
async def test_upload_is_paced(config, http_client, fake_webhook):
    """Test piece uploads start at least pacing_delay apart."""
    paced = config.replace(pacing_delay=0.2, max_concurrent_uploads=4)
    uploader = PayloadUploader(PieceTransportClient(paced, http_client=http_client), paced)

    started = time.monotonic()
    result = await uploader.upload(bytes(30), 'p.bin')
    elapsed = time.monotonic() - started

    assert len(result.file_chunk_ids) == 3
    assert elapsed >= 0.4


@pytest.mark.asyncio
async def test_result_ids_do_not_alias_manifest(config, http_client):
    """Test mutating the returned handles leaves the stored manifest untouched."""
    client = PieceTransportClient(config, http_client=http_client)
    original_put_manifest = client.put_manifest
    stored = []

    async def capture_manifest(manifest):
        stored.append(manifest)
        return await original_put_manifest(manifest)

    client.put_manifest = capture_manifest
    result = await PayloadUploader(client, config).upload(bytes(25), 'c.bin')
    handles = list(result.file_chunk_ids)

    result.file_chunk_ids.append('bogus')

    assert stored[0].ids == handles
