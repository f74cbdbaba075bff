import base64

import pytest
import requests

from newsdesk.api_client import TreeClient
from newsdesk.config import Credentials, RepoConfig
from newsdesk.exceptions import AuthError, ConflictError, NotFoundError, TransportError

from conftest import StubResponse, file_payload


def build_tree(monkeypatch, stub_session, **kwargs):
    monkeypatch.setattr("newsdesk.api_client.requests.Session", lambda: stub_session)
    return TreeClient(Credentials("ghp_test"), RepoConfig("acme", "site"), **kwargs)


def test_get_decodes_content_and_marker(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, file_payload("out/news/a.md", b"hello world" * 20, "s1")))

    remote = tree.get("out/news/a.md")

    assert remote.content == b"hello world" * 20
    assert remote.sha == "s1"
    req = stub_session.request_calls[0]
    assert req["method"] == "GET"
    assert req["url"] == "https://api.github.com/repos/acme/site/contents/out/news/a.md"
    assert req["params"] == {"ref": "main"}
    assert req["headers"]["Authorization"] == "Bearer ghp_test"
    assert req["timeout"] == 30.0


def test_get_quotes_path(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, file_payload("public/images/news/my photo.png", b"x")))

    tree.get("public/images/news/my photo.png")

    assert stub_session.request_calls[0]["url"].endswith("/contents/public/images/news/my%20photo.png")


def test_get_directory_is_not_found(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, [{"name": "a.md", "path": "out/news/a.md", "type": "file"}]))

    with pytest.raises(NotFoundError):
        tree.get("out/news")


def test_get_large_file_reads_blob(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(
        StubResponse(
            200,
            {"type": "file", "encoding": "none", "content": "", "size": 2_000_000,
             "path": "public/images/news/big.png", "sha": "big"},
        ),
        StubResponse(200, {"encoding": "base64", "content": base64.b64encode(b"BIG").decode()}),
    )

    remote = tree.get("public/images/news/big.png")

    assert remote.content == b"BIG"
    assert stub_session.request_calls[1]["url"].endswith("/repos/acme/site/git/blobs/big")


def test_get_missing_raises_not_found_with_path(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(404, {"message": "Not Found", "documentation_url": "https://docs"}))

    with pytest.raises(NotFoundError) as info:
        tree.get("out/news/missing.md")

    assert info.value.path == "out/news/missing.md"
    assert info.value.documentation_url == "https://docs"
    assert not info.value.retryable


def test_put_new_file_omits_marker(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(201, {"content": {"sha": "new1"}, "commit": {"sha": "c1"}}))

    sha = tree.put("out/news/a.md", b"hi", "Create article: A")

    assert sha == "new1"
    req = stub_session.request_calls[0]
    assert req["method"] == "PUT"
    assert req["kwargs"]["json"] == {
        "message": "Create article: A",
        "content": "aGk=",
        "branch": "main",
    }


def test_put_with_marker_sends_it(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, {"content": {"sha": "s2"}}))

    assert tree.put("out/news/a.md", b"hi", "Update", sha="s1") == "s2"
    assert stub_session.request_calls[0]["kwargs"]["json"]["sha"] == "s1"


def test_put_stale_marker_is_conflict(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(409, {"message": "out/news/a.md does not match s1"}))

    with pytest.raises(ConflictError) as info:
        tree.put("out/news/a.md", b"hi", "Update", sha="s1")

    assert info.value.retryable


def test_put_existing_without_marker_is_conflict(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(422, {"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}))

    with pytest.raises(ConflictError):
        tree.put("out/news/a.md", b"hi", "Create")


def test_delete_sends_marker_in_body(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, {"commit": {"sha": "c2"}, "content": None}))

    tree.delete("out/news/a.md", "s1", "Delete article: a")

    req = stub_session.request_calls[0]
    assert req["method"] == "DELETE"
    assert req["kwargs"]["json"] == {"message": "Delete article: a", "sha": "s1", "branch": "main"}


def test_list_maps_entries(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(
        StubResponse(
            200,
            [
                {"name": "a.png", "path": "public/images/news/a.png", "type": "file",
                 "size": 10, "sha": "x", "download_url": "https://raw/a.png"},
                {"name": "old", "path": "public/images/news/old", "type": "dir", "size": 0},
            ],
        )
    )

    entries = tree.list("public/images/news")

    assert [e.name for e in entries] == ["a.png", "old"]
    assert entries[0].size == 10
    assert entries[0].download_url == "https://raw/a.png"
    assert entries[1].type == "dir"


def test_list_on_file_is_not_found(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(200, file_payload("out/news/a.md", b"x")))

    with pytest.raises(NotFoundError):
        tree.list("out/news/a.md")


def test_network_failure_is_transport_error(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(requests.ConnectionError("connection reset"))

    with pytest.raises(TransportError) as info:
        tree.get("out/news/a.md")

    assert info.value.status_code == 0
    assert info.value.retryable
    assert "connection reset" in str(info.value)


def test_ping_rejected_token_is_auth_error(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(401, {"message": "Bad credentials"}))

    with pytest.raises(AuthError, match="Bad credentials"):
        tree.ping()


def test_ping_returns_repository_summary(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(
        StubResponse(200, {"full_name": "acme/site", "default_branch": "main", "permissions": {"push": True}})
    )

    assert tree.ping() == {
        "full_name": "acme/site",
        "default_branch": "main",
        "permissions": {"push": True},
    }
    assert stub_session.request_calls[0]["url"] == "https://api.github.com/repos/acme/site"


def test_request_rejects_body_for_get(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)

    with pytest.raises(ValueError):
        tree.request("GET", "repos/acme/site", json={"a": 1})


def test_request_keeps_token_over_caller_headers(monkeypatch, stub_session):
    tree = build_tree(monkeypatch, stub_session)
    stub_session.queue(StubResponse(204, None))

    tree.request("POST", "repos/acme/site/dispatches", headers={"Authorization": "x", "X-Test": "yes"}, json={})

    headers = stub_session.request_calls[0]["headers"]
    assert headers["Authorization"] == "Bearer ghp_test"
    assert headers["X-Test"] == "yes"


def test_no_retries_by_default(monkeypatch, stub_session):
    build_tree(monkeypatch, stub_session)
    assert stub_session.mounted["https://"].max_retries.total == 0


def test_retries_configurable(monkeypatch, stub_session):
    build_tree(monkeypatch, stub_session, retries=2)
    retry = stub_session.mounted["https://"].max_retries
    assert retry.total == 2
    assert "PUT" not in retry.allowed_methods


def test_context_manager_closes_session(monkeypatch, stub_session):
    with build_tree(monkeypatch, stub_session):
        pass
    assert stub_session.closed
