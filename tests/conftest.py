from __future__ import annotations

import pytest

from devstream.config import Config
from devstream.models import Article
from devstream.sources import BlogSource
from devstream.store import KeyValueStore


def make_article(n: int, source: str = "Blog", raw_content: str | None = None) -> Article:
    return Article(
        url=f"https://example.com/{source.replace(' ', '-').lower()}/{n}",
        title=f"Article {n}",
        image_url=None,
        published_date="2025-01-01",
        source_name=source,
        source_logo_url="https://example.com/logo.png",
        raw_content=raw_content,
    )


class FakeFetcher:
    """按源名称返回预设结果；值为异常时抛出"""

    def __init__(self, results: dict):
        self.results = results
        self.calls: list[str] = []

    async def fetch(self, source: BlogSource):
        self.calls.append(source.name)
        result = self.results.get(source.name, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


@pytest.fixture
def source() -> BlogSource:
    return BlogSource(
        name="Test Blog",
        rss_url="https://example.com/feed",
        logo_url="https://example.com/logo.png",
    )


@pytest.fixture
def sources() -> list[BlogSource]:
    return [
        BlogSource(name=name, rss_url=f"https://{i}.example.com/feed", logo_url="")
        for i, name in enumerate(["Alpha", "Beta", "Gamma"])
    ]


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        raw_proxy_url="https://proxy.example.com/raw",
        json_proxy_url="https://json.example.com/api.json",
        offline_model_enabled=False,
        state_file=tmp_path / "state.json",
    )


@pytest.fixture
def store() -> KeyValueStore:
    return KeyValueStore()
