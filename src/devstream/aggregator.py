"""订阅源聚合模块

并发获取所有订阅源，按源顺序轮询交错合并为文章池，
并维护跨会话持久化的阅读位置（游标）。
"""

import asyncio
import logging
import random
from typing import Callable, Optional, Sequence

from .fetcher import FeedFetcher
from .models import Article
from .sources import BLOG_SOURCES, BlogSource
from .store import LAST_INDEX_KEY, KeyValueStore

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Could not load any articles. Check your connection and try again."
ALL_SKIPPED_MESSAGE = "No articles left to show. Restart to reload every source."

Listener = Callable[["FeedAggregator"], None]


def interleave(per_source: Sequence[Sequence[Article]]) -> list[Article]:
    """轮询交错：第 i 轮按源顺序取每个源的第 i 篇"""
    pool: list[Article] = []
    rounds = max((len(articles) for articles in per_source), default=0)
    for i in range(rounds):
        for articles in per_source:
            if i < len(articles):
                pool.append(articles[i])
    return pool


class FeedAggregator:
    """文章池与游标管理

    articles、current_index、is_loading、load_error 可随时同步读取；
    状态变化时通知通过 subscribe() 注册的回调。
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        store: KeyValueStore,
        sources: Optional[Sequence[BlogSource]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.sources = list(sources if sources is not None else BLOG_SOURCES)
        self.rng = rng or random.Random()

        self.articles: tuple[Article, ...] = ()
        self.current_index: Optional[int] = None
        self.is_loading = False
        self.load_error: Optional[str] = None
        self._listeners: list[Listener] = []

    @classmethod
    async def create(
        cls,
        fetcher: FeedFetcher,
        store: KeyValueStore,
        sources: Optional[Sequence[BlogSource]] = None,
        rng: Optional[random.Random] = None,
    ) -> "FeedAggregator":
        """创建并完成首次加载"""
        aggregator = cls(fetcher, store, sources=sources, rng=rng)
        await aggregator.load()
        return aggregator

    @property
    def current_article(self) -> Optional[Article]:
        if self.current_index is None or not self.articles:
            return None
        return self.articles[self.current_index]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册状态变化回调，返回取消订阅函数"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"状态回调执行失败: {e}")

    async def _fetch_source(self, source: BlogSource) -> list[Article]:
        try:
            return await self.fetcher.fetch(source)
        except Exception as e:
            logger.warning(f"获取 {source.name} 失败: {e}")
            return []

    async def load(self):
        """并发获取全部订阅源并重建文章池"""
        self.is_loading = True
        self.load_error = None
        self._notify()

        logger.info(f"正在获取 {len(self.sources)} 个订阅源...")
        per_source = await asyncio.gather(
            *(self._fetch_source(source) for source in self.sources)
        )

        self.articles = tuple(interleave(per_source))
        self.is_loading = False

        if not self.articles:
            self.current_index = None
            self.load_error = LOAD_ERROR_MESSAGE
            logger.error("所有订阅源均未返回文章")
        else:
            self.current_index = self._restore_index()
            logger.info(
                f"文章池: {len(self.articles)} 篇，当前位置 {self.current_index}"
            )

        self._notify()

    def _restore_index(self) -> int:
        """读取持久化游标，越界或缺失时随机选择"""
        saved = self.store.get(LAST_INDEX_KEY)
        if saved is not None:
            try:
                index = int(saved.strip())
            except ValueError:
                index = -1
            if 0 <= index < len(self.articles):
                return index
            logger.debug(f"持久化游标 {saved!r} 无效，随机选择")
        return self.rng.randrange(len(self.articles))

    def _persist(self):
        if self.current_index is not None:
            self.store.set(LAST_INDEX_KEY, str(self.current_index))

    def advance_to(self, index: int) -> bool:
        """移动游标，越界时不做任何改变"""
        if not 0 <= index < len(self.articles):
            return False
        self.current_index = index
        self._persist()
        self._notify()
        return True

    def navigate(self, delta: int) -> bool:
        """相对当前位置移动"""
        if self.current_index is None:
            return False
        return self.advance_to(self.current_index + delta)

    def skip_source(self, source_name: str) -> int:
        """移除某个源的全部文章，返回移除数量"""
        old_pool = self.articles
        survivors = [a for a in old_pool if a.source_name != source_name]
        removed = len(old_pool) - len(survivors)
        if removed == 0:
            return 0

        logger.info(f"跳过订阅源 {source_name}: 移除 {removed} 篇")

        if not survivors:
            self.articles = ()
            self.current_index = None
            self.load_error = ALL_SKIPPED_MESSAGE
            self._notify()
            return removed

        old_index = self.current_index if self.current_index is not None else -1

        # 旧位置之后第一篇保留文章在新池中的位置
        new_index = len(survivors) - 1
        kept_before = 0
        for i, article in enumerate(old_pool):
            if article.source_name == source_name:
                continue
            if i > old_index:
                new_index = kept_before
                break
            kept_before += 1

        self.articles = tuple(survivors)
        self.current_index = new_index
        self._persist()
        self._notify()
        return removed
