"""配置管理模块"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _default_state_file() -> Path:
    return Path.home() / ".devstream" / "state.json"


@dataclass
class Config:
    """应用配置类"""

    # 订阅源代理配置
    raw_proxy_url: str = "https://api.allorigins.win/raw"
    raw_proxy_param: str = "url"
    json_proxy_url: str = "https://api.rss2json.com/v1/api.json"

    # 抓取设置
    fetch_timeout: int = 30
    max_items_per_feed: int = 20

    # Claude 配置
    claude_base_url: Optional[str] = None
    claude_model: str = "claude-sonnet-4-6"

    # OpenAI 配置
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # 摘要配置
    summary_max_tokens: int = 512
    summary_max_input_chars: int = 12000
    prefetch_ahead: int = 2

    # 离线模型配置
    offline_model: str = "t5-small"
    offline_model_enabled: bool = True
    offline_model_cache_dir: Optional[Path] = None

    # 状态存储
    state_file: Path = field(default_factory=_default_state_file)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Config":
        """从环境变量加载配置"""
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        cache_dir = os.getenv("OFFLINE_MODEL_CACHE_DIR", "").strip() or None
        state_file = os.getenv("DEVSTREAM_STATE_FILE", "").strip() or None

        return cls(
            raw_proxy_url=os.getenv("RAW_PROXY_URL", "https://api.allorigins.win/raw"),
            raw_proxy_param=os.getenv("RAW_PROXY_PARAM", "url"),
            json_proxy_url=os.getenv(
                "JSON_PROXY_URL", "https://api.rss2json.com/v1/api.json"
            ),
            fetch_timeout=int(os.getenv("FETCH_TIMEOUT", "30")),
            max_items_per_feed=int(os.getenv("MAX_ITEMS_PER_FEED", "20")),
            claude_base_url=os.getenv("CLAUDE_BASE_URL", "").strip() or None,
            claude_model=os.getenv("CLAUDE_MODEL", "claude-sonnet-4-6"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "").strip() or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            summary_max_tokens=int(os.getenv("SUMMARY_MAX_TOKENS", "512")),
            summary_max_input_chars=int(os.getenv("SUMMARY_MAX_INPUT_CHARS", "12000")),
            prefetch_ahead=int(os.getenv("PREFETCH_AHEAD", "2")),
            offline_model=os.getenv("OFFLINE_MODEL", "t5-small"),
            offline_model_enabled=os.getenv("OFFLINE_MODEL_ENABLED", "true").lower() == "true",
            offline_model_cache_dir=Path(cache_dir) if cache_dir else None,
            state_file=Path(state_file) if state_file else _default_state_file(),
        )

    def validate(self) -> list[str]:
        """验证配置，返回错误列表"""
        errors = []
        if not self.raw_proxy_url and not self.json_proxy_url:
            errors.append("RAW_PROXY_URL 与 JSON_PROXY_URL 不能同时为空")
        if self.fetch_timeout <= 0:
            errors.append("FETCH_TIMEOUT 必须大于 0")
        if self.max_items_per_feed <= 0:
            errors.append("MAX_ITEMS_PER_FEED 必须大于 0")
        if self.summary_max_tokens <= 0:
            errors.append("SUMMARY_MAX_TOKENS 必须大于 0")
        if self.prefetch_ahead < 0:
            errors.append("PREFETCH_AHEAD 不能为负数")
        return errors
