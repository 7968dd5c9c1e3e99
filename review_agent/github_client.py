"""GitHub API client: pull request files, file contents, and review comments."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from urllib.parse import quote

import httpx
import jwt

from review_agent.config import GitHubCredentials


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status_code: int, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
RAW_ACCEPT_HEADER = "application/vnd.github.raw"
DEFAULT_API_VERSION = "2022-11-28"


@dataclass
class InstallationToken:
    token: str
    expires_at: datetime

    def is_active(self, *, skew_seconds: int = 60) -> bool:
        """Return True if the token is still valid accounting for clock skew."""

        return self.expires_at - timedelta(seconds=skew_seconds) > datetime.now(timezone.utc)


class GitHubClient:
    """Repository access authenticated by a token or as a GitHub App installation."""

    def __init__(
        self,
        *,
        base_url: str,
        credentials: GitHubCredentials,
        installation_id: int | None = None,
        timeout: float = 10.0,
        user_agent: str = "Review-Agent/1.0",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if credentials.uses_app and installation_id is None:
            raise ValueError("GitHub App credentials require an installation id.")
        self._credentials = credentials
        self._installation_id = installation_id
        # Normalize private key: handle escaped newlines from environment variables
        self._private_key = (credentials.private_key_pem or "").replace("\\n", "\n")
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": DEFAULT_ACCEPT_HEADER,
                "X-GitHub-Api-Version": DEFAULT_API_VERSION,
            },
        )
        self._owns_client = client is None
        self._installation_token: InstallationToken | None = None

    def _build_jwt(self) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iat": int((now - timedelta(seconds=60)).timestamp()),
            "exp": int((now + timedelta(minutes=10)).timestamp()),
            "iss": str(self._credentials.app_id),
        }
        try:
            return jwt.encode(payload, self._private_key, algorithm="RS256")
        except Exception as exc:
            raise GitHubAPIError(
                f"Failed to encode JWT: {exc}. Check that GITHUB_PRIVATE_KEY is a valid RSA private key in PEM format.",
                0,
                None,
            ) from exc

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        response = await self._client.request(method, url, headers=headers, params=params, json=json)
        if response.status_code >= 400:
            detail: Any | None
            if response.content:
                try:
                    detail = response.json()
                except ValueError:
                    detail = response.text
            else:
                detail = None
            raise GitHubAPIError(
                f"GitHub API request to {url} failed with status {response.status_code}.",
                response.status_code,
                detail,
            )
        return response

    async def _fetch_installation_token(self) -> InstallationToken:
        response = await self._request(
            "POST",
            f"/app/installations/{self._installation_id}/access_tokens",
            headers={"Authorization": f"Bearer {self._build_jwt()}"},
        )
        data = response.json()
        token_value = data.get("token")
        expires_at_raw = data.get("expires_at")
        if not token_value or not expires_at_raw:
            raise GitHubAPIError(
                "GitHub did not return a usable installation token.",
                response.status_code,
                data,
            )
        return InstallationToken(
            token=token_value,
            expires_at=_parse_github_timestamp(expires_at_raw),
        )

    async def _auth_headers(self, *, accept: str = DEFAULT_ACCEPT_HEADER) -> Dict[str, str]:
        if self._credentials.token:
            token = self._credentials.token
        else:
            if self._installation_token is None or not self._installation_token.is_active():
                self._installation_token = await self._fetch_installation_token()
            token = self._installation_token.token
        return {"Authorization": f"Bearer {token}", "Accept": accept}

    @staticmethod
    def _split_full_name(full_name: str) -> tuple[str, str]:
        if "/" not in full_name:
            raise ValueError(f"Repository full name '{full_name}' is invalid.")
        owner, repo = full_name.split("/", 1)
        return owner, repo

    async def get_pull_request(self, *, full_name: str, pull_number: int) -> Dict[str, Any]:
        owner, repo = self._split_full_name(full_name)
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{pull_number}",
            headers=await self._auth_headers(),
        )
        return response.json()

    async def list_pull_request_files(self, *, full_name: str, pull_number: int) -> List[Dict[str, Any]]:
        owner, repo = self._split_full_name(full_name)

        files: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{pull_number}/files",
                headers=await self._auth_headers(),
                params={"per_page": 100, "page": page},
            )
            batch = response.json()
            if not isinstance(batch, list):
                raise GitHubAPIError(
                    "Unexpected response while listing pull request files.",
                    response.status_code,
                    batch,
                )
            files.extend(batch)
            if len(batch) < 100:
                break
            page += 1
        return files

    async def get_file_content(self, *, full_name: str, path: str, ref: str | None = None) -> str:
        owner, repo = self._split_full_name(full_name)
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{quote(path.lstrip('/'))}",
            headers=await self._auth_headers(accept=RAW_ACCEPT_HEADER),
            params={"ref": ref} if ref else None,
        )
        return response.text

    async def create_review_comment(
        self,
        *,
        full_name: str,
        pull_number: int,
        commit_id: str,
        path: str,
        line: int,
        body: str,
    ) -> Dict[str, Any]:
        owner, repo = self._split_full_name(full_name)
        payload = {"body": body, "commit_id": commit_id, "path": path, "line": line, "side": "RIGHT"}
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments",
            headers=await self._auth_headers(),
            json=payload,
        )
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _parse_github_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw).astimezone(timezone.utc)
