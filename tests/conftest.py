"""Shared fixtures."""

import json

import httpx
import pytest


class FakeGistApi:
    """Minimal in-memory stand-in for the gist endpoints."""

    def __init__(self, valid_token="good-token"):
        self.valid_token = valid_token
        self.requests = []
        self.gists = {}
        self.next_id = 1

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("authorization") != f"token {self.valid_token}":
            return httpx.Response(401, json={"message": "Bad credentials"})

        path = request.url.path
        if path == "/user":
            return httpx.Response(200, json={"login": "octocat"})

        if path == "/gists" and request.method == "POST":
            gist_id = f"gist{self.next_id}"
            self.next_id += 1
            self.gists[gist_id] = json.loads(request.content)
            return httpx.Response(201, json=self._gist(gist_id))

        if path.startswith("/gists/"):
            gist_id = path.rsplit("/", 1)[-1]
            if gist_id not in self.gists:
                return httpx.Response(404, json={"message": "Not Found"})
            if request.method == "PATCH":
                self.gists[gist_id] = json.loads(request.content)
            return httpx.Response(200, json=self._gist(gist_id))

        return httpx.Response(404, json={"message": "Not Found"})

    def _gist(self, gist_id):
        return {
            "id": gist_id,
            "html_url": f"https://gist.github.com/{gist_id}",
            "updated_at": "2024-05-01T12:00:00Z",
            "files": self.gists[gist_id]["files"],
        }


@pytest.fixture
def gist_api():
    """Fresh fake gist API; pass to ``httpx.MockTransport``."""
    return FakeGistApi()
