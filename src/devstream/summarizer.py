"""摘要调度模块

根据用户选择的模式（离线 / Claude / OpenAI）生成文章摘要，
按 (模式, 文章 URL) 缓存结果。模式与 API Key 每次请求时从存储中读取。
"""

import asyncio
import logging
from enum import Enum
from typing import Iterable, Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from .aggregator import FeedAggregator
from .config import Config
from .exceptions import SummarizerError
from .markup import strip_html
from .models import Article
from .offline import FALLBACK_SUMMARY, OfflineSummarizer
from .store import CLAUDE_KEY, OPENAI_KEY, SUMMARIZER_MODE_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class SummarizerMode(Enum):
    """摘要模式"""

    OFFLINE = "offline"
    CLAUDE = "claude"
    OPENAI = "openai"


DEFAULT_SUMMARIZER_MODE = SummarizerMode.OFFLINE

KEY_REQUIRED_MESSAGES = {
    SummarizerMode.CLAUDE: "Add your Claude API key in Settings to enable summaries.",
    SummarizerMode.OPENAI: "Add your OpenAI API key in Settings to enable summaries.",
}

CREDENTIAL_KEYS = {
    SummarizerMode.CLAUDE: CLAUDE_KEY,
    SummarizerMode.OPENAI: OPENAI_KEY,
}

SUMMARY_PROMPT = """Summarize the following engineering blog post for a software developer.
Write 3 to 5 short paragraphs covering the problem, the approach and the key takeaways.
Do not add a title, preface or bullet points.

Title: {title}

Article:
{body}"""


def parse_mode(value: Optional[str]) -> SummarizerMode:
    """无效或缺失时返回默认模式"""
    try:
        return SummarizerMode(value)
    except ValueError:
        return DEFAULT_SUMMARIZER_MODE


class SummarizationRouter:
    """摘要调度器"""

    def __init__(
        self,
        config: Config,
        store: KeyValueStore,
        offline: Optional[OfflineSummarizer] = None,
    ):
        self.config = config
        self.store = store
        self.offline = offline or OfflineSummarizer(
            model_name=config.offline_model,
            enabled=config.offline_model_enabled,
            cache_dir=config.offline_model_cache_dir,
        )
        self._cache: dict[tuple[str, str], str] = {}
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # 设置
    # ------------------------------------------------------------------

    @property
    def mode(self) -> SummarizerMode:
        return parse_mode(self.store.get(SUMMARIZER_MODE_KEY))

    def set_mode(self, mode: SummarizerMode):
        self.store.set(SUMMARIZER_MODE_KEY, mode.value)

    def set_api_key(self, mode: SummarizerMode, key: str):
        """保存 API Key，空字符串表示删除"""
        store_key = CREDENTIAL_KEYS[mode]
        if key:
            self.store.set(store_key, key)
        else:
            self.store.remove(store_key)

    def _api_key(self, mode: SummarizerMode) -> str:
        return (self.store.get(CREDENTIAL_KEYS[mode]) or "").strip()

    # ------------------------------------------------------------------
    # 缓存
    # ------------------------------------------------------------------

    def get_cached(self, url: str, mode: Optional[SummarizerMode] = None) -> Optional[str]:
        mode = mode or self.mode
        return self._cache.get((mode.value, url))

    # ------------------------------------------------------------------
    # 后端
    # ------------------------------------------------------------------

    def _build_prompt(self, article: Article, body: str) -> str:
        return SUMMARY_PROMPT.format(
            title=article.title,
            body=body[: self.config.summary_max_input_chars],
        )

    def _claude_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=api_key, base_url=self.config.claude_base_url)

    def _openai_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self.config.openai_base_url)

    async def _call_claude(self, api_key: str, prompt: str) -> str:
        async with self._claude_client(api_key) as client:
            response = await client.messages.create(
                model=self.config.claude_model,
                max_tokens=self.config.summary_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        if not response.content:
            raise SummarizerError("Claude 返回空内容")
        return (getattr(response.content[0], "text", "") or "").strip()

    async def _call_openai(self, api_key: str, prompt: str) -> str:
        async with self._openai_client(api_key) as client:
            response = await client.chat.completions.create(
                model=self.config.openai_model,
                max_tokens=self.config.summary_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        if not response.choices:
            raise SummarizerError("OpenAI 返回空内容")
        return (response.choices[0].message.content or "").strip()

    async def _summarize_offline(self, article: Article) -> str:
        key = (SummarizerMode.OFFLINE.value, article.url)
        try:
            summary = await self.offline.summarize(strip_html(article.raw_content))
        except Exception as e:
            logger.error(f"离线摘要失败: {e}")
            return FALLBACK_SUMMARY
        self._cache[key] = summary
        return summary

    async def _summarize_remote(self, mode: SummarizerMode, article: Article) -> str:
        api_key = self._api_key(mode)
        if not api_key:
            return KEY_REQUIRED_MESSAGES[mode]

        body = strip_html(article.raw_content)
        if not body:
            return FALLBACK_SUMMARY

        prompt = self._build_prompt(article, body)
        try:
            if mode is SummarizerMode.CLAUDE:
                summary = await self._call_claude(api_key, prompt)
            else:
                summary = await self._call_openai(api_key, prompt)
        except Exception as e:
            logger.error(f"{mode.value} 摘要调用失败: {e}")
            return FALLBACK_SUMMARY

        if not summary:
            logger.warning(f"{mode.value} 返回空摘要: {article.url}")
            return FALLBACK_SUMMARY

        self._cache[(mode.value, article.url)] = summary
        return summary

    async def summarize(self, article: Article) -> str:
        """生成摘要，始终返回字符串"""
        mode = self.mode
        cached = self._cache.get((mode.value, article.url))
        if cached is not None:
            return cached

        if mode is SummarizerMode.OFFLINE:
            return await self._summarize_offline(article)
        return await self._summarize_remote(mode, article)

    # ------------------------------------------------------------------
    # 预取
    # ------------------------------------------------------------------

    def prefetch(self, articles: Iterable[Article]) -> list[asyncio.Task]:
        """后台生成摘要，结果仅写入缓存，错误直接丢弃"""
        tasks = []
        for article in articles:
            if self.get_cached(article.url) is not None:
                continue
            task = asyncio.create_task(self.summarize(article))
            self._background.add(task)
            task.add_done_callback(self._discard_task)
            tasks.append(task)
        return tasks

    def prefetch_ahead(
        self, aggregator: FeedAggregator, count: Optional[int] = None
    ) -> list[asyncio.Task]:
        """预取当前位置之后的若干篇文章"""
        if aggregator.current_index is None:
            return []
        count = self.config.prefetch_ahead if count is None else count
        start = aggregator.current_index + 1
        return self.prefetch(aggregator.articles[start:start + count])

    def _discard_task(self, task: asyncio.Task):
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"预取失败: {task.exception()}")

    async def aclose(self):
        """取消未完成的预取任务"""
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
