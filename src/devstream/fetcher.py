"""订阅源获取模块

每个订阅源依次尝试代理策略，第一个成功的结果生效：
1. 原始代理（返回 XML 原文，按 RSS/Atom 解析）
2. rss2json 代理（返回结构化 JSON）
全部失败时返回空列表，从不向调用方抛出异常。
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import aiohttp

from .config import Config
from .exceptions import FeedFetchError, FeedParseError
from .models import Article
from .parser import parse_json, parse_xml
from .sources import BlogSource

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; DevStream/1.0; RSS reader)",
    "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
}

FetchStrategy = Callable[[aiohttp.ClientSession, BlogSource], Awaitable[list[Article]]]


def proxy_url(base: str, param: str, target: str) -> str:
    """拼接代理地址，目标 URL 完整编码"""
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{param}={quote(target, safe='')}"


class FeedFetcher:
    """订阅源获取器"""

    def __init__(self, config: Config):
        self.config = config
        self.timeout = aiohttp.ClientTimeout(total=config.fetch_timeout)
        self.strategies: list[tuple[str, FetchStrategy]] = [
            ("raw-proxy", self._via_raw_proxy),
            ("json-proxy", self._via_json_proxy),
        ]

    async def _get_bytes(self, session: aiohttp.ClientSession, url: str) -> bytes:
        """获取原始字节"""
        try:
            async with session.get(url, headers=HEADERS) as response:
                if response.status != 200:
                    raise FeedFetchError(f"HTTP {response.status}")
                return await response.read()
        except asyncio.TimeoutError as e:
            raise FeedFetchError("请求超时") from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(str(e)) from e

    async def _get_json(self, session: aiohttp.ClientSession, url: str) -> Any:
        """获取 JSON"""
        try:
            async with session.get(url, headers={"Accept": "application/json"}) as response:
                if response.status != 200:
                    raise FeedFetchError(f"HTTP {response.status}")
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise FeedFetchError("请求超时") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise FeedFetchError(str(e)) from e

    async def _via_raw_proxy(
        self, session: aiohttp.ClientSession, source: BlogSource
    ) -> list[Article]:
        url = proxy_url(self.config.raw_proxy_url, self.config.raw_proxy_param, source.rss_url)
        data = await self._get_bytes(session, url)
        return parse_xml(data, source, limit=self.config.max_items_per_feed)

    async def _via_json_proxy(
        self, session: aiohttp.ClientSession, source: BlogSource
    ) -> list[Article]:
        url = proxy_url(self.config.json_proxy_url, "rss_url", source.rss_url)
        payload = await self._get_json(session, url)
        return parse_json(payload, source, limit=self.config.max_items_per_feed)

    async def _run_strategies(
        self, session: aiohttp.ClientSession, source: BlogSource
    ) -> list[Article]:
        for name, strategy in self.strategies:
            try:
                articles = await strategy(session, source)
            except (FeedFetchError, FeedParseError) as e:
                logger.debug(f"{source.name} [{name}] 失败: {e}")
                continue
            except Exception as e:
                logger.warning(f"{source.name} [{name}] 异常: {e}")
                continue
            logger.info(f"获取 {source.name} [{name}]: {len(articles)} 篇文章")
            return articles

        logger.warning(f"获取 {source.name} 失败: 所有代理均不可用")
        return []

    async def fetch(self, source: BlogSource) -> list[Article]:
        """获取单个源的文章，失败时返回空列表"""
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._run_strategies(session, source)
        except Exception as e:
            logger.warning(f"获取 {source.name} 失败: {e}")
            return []
