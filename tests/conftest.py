import base64
import sys
from pathlib import Path

import pytest

# Allow tests to import the package from src without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from newsdesk.api_client import RemoteFile, TreeEntry  # noqa: E402
from newsdesk.config import Credentials, RepoConfig  # noqa: E402
from newsdesk.exceptions import ConflictError, NotFoundError  # noqa: E402


class StubResponse:
    def __init__(self, status_code=200, json_data=None, text="", headers=None):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.headers = headers or {}

    def json(self):
        if isinstance(self._json_data, Exception):
            raise self._json_data
        return self._json_data


class StubSession:
    """Records requests and answers them from a FIFO of queued responses."""

    def __init__(self):
        self.request_calls = []
        self.responses = []
        self.mounted = {}
        self.closed = False

    def queue(self, *responses):
        self.responses.extend(responses)

    def mount(self, prefix, adapter):
        self.mounted[prefix] = adapter

    def close(self):
        self.closed = True

    def request(self, method, url, headers=None, params=None, timeout=None, **kwargs):
        self.request_calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers or {},
                "params": params or {},
                "timeout": timeout,
                "kwargs": kwargs,
            }
        )
        if not self.responses:
            raise AssertionError(f"No queued response for {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def file_payload(path, content: bytes, sha="abc123"):
    """A contents API answer for a single file."""
    encoded = base64.b64encode(content).decode("ascii")
    # The API wraps base64 at 60 columns
    wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
    return {
        "type": "file",
        "encoding": "base64",
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "sha": sha,
        "size": len(content),
        "content": wrapped,
    }


class FakeTree:
    """
    In-memory stand-in for TreeClient.

    Enforces the same preconditions as the contents API: a put without a
    marker fails on an existing file, a put or delete with a stale marker
    fails, and empty directories do not exist.
    """

    def __init__(self):
        self.files = {}
        self.calls = []
        self.failures = {}
        self._counter = 0

    def _next_sha(self):
        self._counter += 1
        return f"sha{self._counter}"

    def seed(self, path, content):
        if isinstance(content, str):
            content = content.encode("utf-8")
        sha = self._next_sha()
        self.files[path] = (content, sha)
        return sha

    def text(self, path):
        return self.files[path][0].decode("utf-8")

    def sha(self, path):
        return self.files[path][1]

    def get(self, path):
        self.calls.append(("get", path))
        if path in self.failures:
            raise self.failures[path]
        if path not in self.files:
            raise NotFoundError(status_code=404, detail="Not Found", path=path)
        content, sha = self.files[path]
        return RemoteFile(path=path, content=content, sha=sha)

    def put(self, path, content, message, sha=None):
        self.calls.append(("put", path, message, sha))
        existing = self.files.get(path)
        if existing is None and sha:
            raise ConflictError(status_code=409, detail="sha given for a new file", path=path)
        if existing is not None and sha is None:
            raise ConflictError(status_code=422, detail='Invalid request. "sha" wasn\'t supplied.', path=path)
        if existing is not None and sha != existing[1]:
            raise ConflictError(status_code=409, detail=f"{path} does not match {sha}", path=path)
        new_sha = self._next_sha()
        self.files[path] = (bytes(content), new_sha)
        return new_sha

    def delete(self, path, sha, message):
        self.calls.append(("delete", path, message, sha))
        if path not in self.files:
            raise NotFoundError(status_code=404, detail="Not Found", path=path)
        if self.files[path][1] != sha:
            raise ConflictError(status_code=409, detail=f"{path} does not match {sha}", path=path)
        del self.files[path]

    def list(self, directory):
        self.calls.append(("list", directory))
        prefix = directory.strip("/") + "/"
        entries = {}
        for path, (content, sha) in self.files.items():
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            name = rest.split("/", 1)[0]
            if "/" in rest:
                entries[name] = TreeEntry(name=name, path=prefix + name, type="dir")
            else:
                entries[name] = TreeEntry(
                    name=name,
                    path=path,
                    type="file",
                    size=len(content),
                    sha=sha,
                    download_url=f"https://raw.example.com/{path}",
                )
        if not entries:
            raise NotFoundError(status_code=404, detail="Not Found", path=directory)
        return [entries[name] for name in sorted(entries)]


class RecordingNotifier:
    def __init__(self, result=True):
        self.calls = 0
        self.result = result

    def notify(self):
        self.calls += 1
        return self.result


@pytest.fixture
def stub_session():
    return StubSession()


@pytest.fixture
def fake_tree():
    return FakeTree()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def credentials():
    return Credentials("ghp_test")


@pytest.fixture
def repo_config():
    return RepoConfig(owner="acme", repo="site")
