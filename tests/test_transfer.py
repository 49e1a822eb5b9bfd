"""Tests for uploading and downloading chunks."""

import pytest

from chunkferry.exceptions import TransferError
from chunkferry.file.manifest import ChunkInfo, ChunkManifest, load_manifest
from chunkferry.transfer import (
    ChunkDownloader, ChunkUploader, CommandLineTransport, SDKTransport,
    StorageTransport, resolve_transport,
)


class RecordingTransport(StorageTransport):
    """Transport that records calls and fails on request."""

    name = 'recording'

    def __init__(self, fail=(), broken=()):
        self.fail = set(fail)
        self.broken = set(broken)
        self.uploads = []
        self.downloads = []

    async def upload(self, path, fragment_size_mb):
        self.uploads.append((path.name, fragment_size_mb))
        if path.name in self.broken:
            raise TransferError('cannot start client')
        return path.name not in self.fail

    async def download(self, remote_id, output_path, fragment_size_mb):
        self.downloads.append((remote_id, output_path.name, fragment_size_mb))
        if remote_id in self.broken:
            raise TransferError('cannot start client')
        if remote_id in self.fail:
            return False
        output_path.write_bytes(remote_id.encode())
        return True


def make_manifest(indices):
    return ChunkManifest(
        source_name='input.bin',
        source_size=10 * len(indices),
        chunk_size=10,
        max_chunks=10,
        chunks=[ChunkInfo(index=i, name=f'chunk_{i}.dat', size=10, offset=10 * i) for i in indices],
    )


# === Uploader ===

@pytest.mark.asyncio
async def test_upload_skips_missing_chunks(tmp_path, write_chunks):
    chunks = write_chunks(tmp_path / 'chunks', {0: b'zero', 2: b'two'})
    transport = RecordingTransport()

    report = await ChunkUploader(transport, fragment_size_mb=400, max_chunks=3).upload_directory(chunks)

    assert transport.uploads == [('chunk_0.dat', 400), ('chunk_2.dat', 400)]
    assert report.attempted == [0, 2]
    assert report.skipped == [1]
    assert report.succeeded == [0, 2]


@pytest.mark.asyncio
async def test_upload_failure_does_not_abort_batch(tmp_path, write_chunks):
    chunks = write_chunks(tmp_path / 'chunks', {0: b'a', 1: b'b', 2: b'c'})
    transport = RecordingTransport(fail={'chunk_0.dat'}, broken={'chunk_1.dat'})
    uploader = ChunkUploader(transport, max_chunks=3)

    report = await uploader.upload_directory(chunks)

    assert report.failed == [0, 1]
    assert report.succeeded == [2]
    assert not report.ok
    assert report.bytes_transferred == 1


@pytest.mark.asyncio
async def test_upload_follows_manifest(tmp_path, write_chunks):
    chunks = write_chunks(tmp_path / 'chunks', {0: b'a', 1: b'b', 5: b'stale'})
    transport = RecordingTransport()

    report = await ChunkUploader(transport, max_chunks=10).upload_directory(
        chunks, make_manifest([0, 1])
    )

    assert report.attempted == [0, 1]
    assert report.skipped == []


@pytest.mark.asyncio
async def test_upload_with_unavailable_transport_does_nothing(tmp_path, write_chunks):
    chunks = write_chunks(tmp_path / 'chunks', {0: b'a'})

    report = await ChunkUploader(SDKTransport(), max_chunks=3).upload_directory(chunks)

    assert report.transport_available is False
    assert report.attempted == []


# === Downloader ===

@pytest.mark.asyncio
async def test_download_attempts_every_index(tmp_path, write_chunks):
    target = write_chunks(tmp_path / 'downloaded', {1: b'already here'})
    transport = RecordingTransport(fail={'chunk_2.dat'})

    report = await ChunkDownloader(transport, fragment_size_mb=64, max_chunks=4).download_all(target)

    assert [d[0] for d in transport.downloads] == ['chunk_0.dat', 'chunk_1.dat', 'chunk_2.dat', 'chunk_3.dat']
    assert transport.downloads[0] == ('chunk_0.dat', 'chunk_0.dat', 64)
    assert report.failed == [2]
    assert report.succeeded == [0, 1, 3]


@pytest.mark.asyncio
async def test_download_creates_target_and_writes_manifest(tmp_path):
    target = tmp_path / 'a' / 'b'
    transport = RecordingTransport()

    report = await ChunkDownloader(transport, max_chunks=10).download_all(target, make_manifest([0, 1, 2]))

    assert target.is_dir()
    assert report.attempted == [0, 1, 2]
    assert load_manifest(target).indices == [0, 1, 2]


@pytest.mark.asyncio
async def test_download_with_unavailable_transport_does_nothing(tmp_path):
    target = tmp_path / 'downloaded'

    report = await ChunkDownloader(SDKTransport(), max_chunks=3).download_all(target)

    assert target.is_dir()
    assert report.transport_available is False
    assert list(target.iterdir()) == []


@pytest.mark.asyncio
async def test_download_without_manifest_removes_stale_one(tmp_path):
    target = tmp_path / 'downloaded'
    target.mkdir()
    make_manifest([0]).save(target / 'manifest.json')
    transport = RecordingTransport()

    report = await ChunkDownloader(transport, max_chunks=3).download_all(target)

    assert not (target / 'manifest.json').exists()
    assert load_manifest(target) is None
    assert report.attempted == [0, 1, 2]
    assert report.bytes_transferred == len(b'chunk_0.dat') * 3


def test_remote_id_matches_local_name():
    assert ChunkDownloader.remote_id(7) == 'chunk_7.dat'


# === Transports ===

def test_command_line_argument_shape(tmp_path):
    transport = CommandLineTransport('0g-storage-client')
    path = tmp_path / 'chunk_0.dat'

    assert transport.upload_args(path, 400) == [
        '0g-storage-client', 'upload', '--fragment-size', '400MB', str(path),
    ]
    assert transport.download_args('chunk_0.dat', path, 400) == [
        '0g-storage-client', 'download', '--fragment-size', '400MB',
        '--output', str(path), 'chunk_0.dat',
    ]


def test_resolve_transport_falls_back_to_sdk():
    transport = resolve_transport('definitely-not-a-storage-client-binary', fragment_size_mb=128)

    assert isinstance(transport, SDKTransport)
    assert not transport.available
    assert '128MB' in transport.describe('upload')


def test_resolve_transport_finds_client(fake_client):
    transport = resolve_transport(fake_client.command)

    assert isinstance(transport, CommandLineTransport)
    assert transport.available


@pytest.mark.asyncio
async def test_command_line_transport_runs_client(tmp_path, fake_client, write_chunks, monkeypatch):
    chunks = write_chunks(tmp_path / 'chunks', {0: b'zero', 1: b'one'})
    monkeypatch.setenv('FAKE_CLIENT_FAIL', 'chunk_1.dat')
    transport = CommandLineTransport(fake_client.command)

    assert await transport.upload(chunks / 'chunk_0.dat', 400) is True
    assert await transport.upload(chunks / 'chunk_1.dat', 400) is False

    assert fake_client.calls() == [
        ['upload', '--fragment-size', '400MB', str(chunks / 'chunk_0.dat')],
        ['upload', '--fragment-size', '400MB', str(chunks / 'chunk_1.dat')],
    ]
    assert (fake_client.store / 'chunk_0.dat').read_bytes() == b'zero'


@pytest.mark.asyncio
async def test_command_line_transport_download(tmp_path, fake_client):
    (fake_client.store / 'chunk_3.dat').write_bytes(b'three')
    output = tmp_path / 'chunk_3.dat'
    transport = CommandLineTransport(fake_client.command)

    assert await transport.download('chunk_3.dat', output, 16) is True
    assert output.read_bytes() == b'three'
    assert await transport.download('chunk_4.dat', tmp_path / 'chunk_4.dat', 16) is False


@pytest.mark.asyncio
async def test_command_line_transport_unstartable(tmp_path):
    script = tmp_path / 'not-executable'
    script.write_text('#!/bin/sh\nexit 0\n')
    transport = CommandLineTransport(str(script))

    with pytest.raises(TransferError):
        await transport.run([str(script), 'upload'])
