from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
import requests

from vault_deploy.exceptions import ReleaseError
from vault_deploy.release import GITHUB_API_URL, CircuitReleaseFetcher

REPO = "acme/circuits"


class DummySession:
    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[tuple[str, dict[str, str]]] = []

    def get(self, url: str, headers: dict[str, str], timeout: Any = None) -> SimpleNamespace:
        self.requests.append((url, headers))
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return SimpleNamespace(ok=False, status_code=404)
        return SimpleNamespace(
            ok=True,
            status_code=200,
            json=lambda: route,
            content=route if isinstance(route, bytes) else b"",
        )


def _fetcher(routes: dict[str, Any]) -> tuple[CircuitReleaseFetcher, DummySession]:
    session = DummySession(routes)
    fetcher = CircuitReleaseFetcher("ghp_secret", repository=REPO, session=session)  # type: ignore[arg-type]
    return fetcher, session


TAG_URL = f"{GITHUB_API_URL}/repos/{REPO}/releases/tags/v3.1.0"
ASSET_URL = f"{GITHUB_API_URL}/repos/{REPO}/releases/assets/42"


def test_fetch_downloads_verifier_asset() -> None:
    fetcher, session = _fetcher(
        {
            TAG_URL: {"assets": [{"name": "notes.txt", "id": 1}, {"name": "vessel.hex", "id": 42}]},
            ASSET_URL: b"6080604052\n",
        }
    )

    release = fetcher.fetch("v3.1.0")

    assert release.version == "v3.1.0"
    assert release.unified_bytecode == "0x6080604052"
    (_, meta_headers), (_, asset_headers) = session.requests
    assert meta_headers["Authorization"] == "token ghp_secret"
    assert asset_headers["Accept"] == "application/octet-stream"


def test_missing_asset_is_an_error() -> None:
    fetcher, _ = _fetcher({TAG_URL: {"assets": [{"name": "notes.txt", "id": 1}]}})
    with pytest.raises(ReleaseError) as excinfo:
        fetcher.fetch("v3.1.0")
    assert excinfo.value.tag == "v3.1.0"
    assert excinfo.value.details["assets"] == ["notes.txt"]


def test_http_failure_is_an_error() -> None:
    fetcher, _ = _fetcher({})
    with pytest.raises(ReleaseError) as excinfo:
        fetcher.fetch("v3.1.0")
    assert excinfo.value.details["status"] == 404


def test_network_exception_is_wrapped() -> None:
    fetcher, _ = _fetcher({TAG_URL: requests.ConnectionError("offline")})
    with pytest.raises(ReleaseError):
        fetcher.fetch("v3.1.0")


def test_empty_tag_is_rejected_without_request() -> None:
    fetcher, session = _fetcher({})
    with pytest.raises(ReleaseError):
        fetcher.fetch("")
    assert session.requests == []
