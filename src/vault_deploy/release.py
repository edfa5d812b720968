"""Fetch the verifier bytecode of a circuit release from GitHub."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

from .exceptions import ReleaseError
from .utils import maybe_add_0x_prefix

logger = logging.getLogger(__name__)

DEFAULT_REPOSITORY = "Meshee-Team/meex-circuits"
GITHUB_API_URL = "https://api.github.com"
VERIFIER_ASSET_NAME = "vessel.hex"


@dataclass(frozen=True)
class CircuitRelease:
    """Circuit version tag and the unified verifier creation bytecode."""

    version: str
    unified_bytecode: str


class CircuitReleaseFetcher:
    """Download release metadata and the verifier asset for a tag."""

    def __init__(
        self,
        github_token: str,
        *,
        repository: str = DEFAULT_REPOSITORY,
        session: requests.Session | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self._token = github_token
        self._repository = repository
        self._session = session or requests.Session()
        self._timeout = request_timeout

    def _headers(self, accept: str) -> dict[str, str]:
        return {"Authorization": f"token {self._token}", "Accept": accept}

    def _get(self, url: str, accept: str, tag: str) -> requests.Response:
        try:
            response = self._session.get(url, headers=self._headers(accept), timeout=self._timeout)
        except requests.RequestException as exc:
            raise ReleaseError(
                "Network error when fetching release info.", tag=tag, details={"error": str(exc)}
            ) from exc
        if not response.ok:
            raise ReleaseError(
                "Network error when fetching release info.",
                tag=tag,
                details={"url": url, "status": response.status_code},
            )
        return response

    def fetch(self, tag: str) -> CircuitRelease:
        if not tag:
            raise ReleaseError("RELEASE_TAG is empty", tag=tag)
        logger.info("Inspect release with tag %s.", tag)
        url = f"{GITHUB_API_URL}/repos/{self._repository}/releases/tags/{tag}"
        release: dict[str, Any] = self._get(url, "application/vnd.github.v3+json", tag).json()
        logger.debug("Release data for %s: %s", tag, release)

        for asset in release.get("assets") or []:
            if asset.get("name") == VERIFIER_ASSET_NAME:
                bytecode = self._download_asset(asset["id"], tag)
                return CircuitRelease(version=tag, unified_bytecode=maybe_add_0x_prefix(bytecode))

        raise ReleaseError(
            f"Release {tag} has no {VERIFIER_ASSET_NAME} asset",
            tag=tag,
            details={"assets": [a.get("name") for a in release.get("assets") or []]},
        )

    def _download_asset(self, asset_id: int, tag: str) -> str:
        logger.info("Download release asset %s", asset_id)
        url = f"{GITHUB_API_URL}/repos/{self._repository}/releases/assets/{asset_id}"
        return self._get(url, "application/octet-stream", tag).content.decode().strip()
