"""Shared pytest fixtures for all tests."""

import json
import os
import sys
import textwrap
from pathlib import Path

import pytest

from chunkferry.config import PipelineConfig


FAKE_CLIENT = textwrap.dedent('''
    """Stand-in for the storage client: a directory acts as the network."""
    import json
    import os
    import shutil
    import sys

    args = sys.argv[1:]
    with open(os.environ["FAKE_CLIENT_LOG"], "a") as log:
        log.write(json.dumps(args) + "\\n")

    target = args[-1]
    failing = set(filter(None, os.environ.get("FAKE_CLIENT_FAIL", "").split(",")))
    if os.path.basename(target) in failing:
        print("fake client: refusing " + target, file=sys.stderr)
        sys.exit(3)

    store = os.environ["FAKE_CLIENT_STORE"]
    if args[0] == "upload":
        shutil.copyfile(target, os.path.join(store, os.path.basename(target)))
    elif args[0] == "download":
        source = os.path.join(store, target)
        if not os.path.exists(source):
            sys.exit(2)
        shutil.copyfile(source, args[args.index("--output") + 1])
    else:
        sys.exit(64)
''')


class FakeClient:
    """Handle on the fake storage client installed by the `fake_client` fixture."""

    def __init__(self, root: Path):
        self.script = root / 'fake_client.py'
        self.log = root / 'client.log'
        self.store = root / 'store'
        self.store.mkdir()
        self.script.write_text(FAKE_CLIENT)
        self.command = f'"{sys.executable}" "{self.script}"'

    def calls(self):
        """Argument lists of every invocation so far."""
        if not self.log.exists():
            return []
        return [json.loads(line) for line in self.log.read_text().splitlines()]

    def operations(self, operation):
        return [c for c in self.calls() if c[0] == operation]


@pytest.fixture
def fake_client(tmp_path, monkeypatch):
    """
    Install a fake storage client.

    Uploads copy into a store directory, downloads copy back out.
    FAKE_CLIENT_FAIL holds comma separated chunk names that exit non-zero.
    """
    root = tmp_path / 'fake_client'
    root.mkdir()
    client = FakeClient(root)
    monkeypatch.setenv('FAKE_CLIENT_LOG', str(client.log))
    monkeypatch.setenv('FAKE_CLIENT_STORE', str(client.store))
    monkeypatch.delenv('FAKE_CLIENT_FAIL', raising=False)
    return client


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep CHUNKFERRY_* variables from the outer environment out of tests."""
    for name in list(os.environ):
        if name.startswith('CHUNKFERRY_'):
            monkeypatch.delenv(name)


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a 2500 byte file with a non-repeating pattern.

    Returns:
        Path to the sample file
    """
    file_path = tmp_path / 'input.bin'
    file_path.write_bytes(bytes(i % 251 for i in range(2500)))
    return file_path


@pytest.fixture
def small_config(tmp_path):
    """
    Config with 1000 byte chunks, at most 5 of them.

    Returns:
        PipelineConfig rooted in tmp_path
    """
    return PipelineConfig(
        chunk_size=1000,
        max_chunks=5,
        chunks_dir=tmp_path / 'chunks',
        download_dir=tmp_path / 'downloaded_chunks',
    )


@pytest.fixture
def write_chunks():
    """Return a helper writing chunk_<i>.dat files from an {index: bytes} mapping."""
    def write(directory: Path, contents: dict) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        for index, data in contents.items():
            (directory / f'chunk_{index}.dat').write_bytes(data)
        return directory
    return write
