"""Shared fixtures: a small dictionary and a mock dictionary server."""

import gzip
from typing import Dict, Optional

import httpx
import pytest

from de_en_dict.config import Settings

DICT_URL = "https://dict.test/de-en.txt.gz"
VERSION_URL = "https://dict.test/sha256sums.txt"

SAMPLE_DICTIONARY = "\n".join(
    [
        "# Version :: devel 2024-01-01",
        "# Stats: 6 entries (6 main + 0 additional, 4 1:1 translations)",
        "Hund {m}|Köter {m}::dog|mutt",
        "Straße {f}::street",
        "Strasse {f} [Schw.]::street [Swiss]",
        "run::rennen",
        "to run::laufen",
        "Apfel {m}::apple",
        "",
    ]
)


def gzip_text(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


class DictionaryServer:
    """Serves a dictionary and its version marker through httpx.MockTransport."""

    def __init__(self, text: str = SAMPLE_DICTIONARY, version: bytes = b"v1") -> None:
        self.body = gzip_text(text)
        self.version = version
        self.dict_status = 200
        self.version_status = 200
        self.fail_version = False
        # advertised Content-Length; None means the real body length
        self.content_length: Optional[int] = None
        self.requests: Dict[str, int] = {DICT_URL: 0, VERSION_URL: 0}

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] = self.requests.get(url, 0) + 1
        if url == DICT_URL:
            length = len(self.body) if self.content_length is None else self.content_length
            return httpx.Response(
                self.dict_status,
                stream=httpx.ByteStream(self.body),
                headers={"content-type": "application/gzip", "content-length": str(length)},
            )
        if url == VERSION_URL:
            if self.fail_version:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(self.version_status, content=self.version)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport())


@pytest.fixture
def settings(tmp_path):
    """Settings with a temporary cache and short protocol timings."""
    return Settings(
        cache_dir=str(tmp_path / "cache"),
        dict_url=DICT_URL,
        dict_version_url=VERSION_URL,
        update_check_delay=60.0,
        status_retries=3,
        status_retry_backoff=0.05,
        search_timeout=5.0,
        random_timeout=5.0,
    )


@pytest.fixture
def server():
    return DictionaryServer()
