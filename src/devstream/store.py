"""持久化键值存储模块

字符串键 → 字符串值，跨会话保存阅读位置、摘要模式和 API Key。
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

LAST_INDEX_KEY = "last-index"
HINT_DISMISSED_KEY = "hint-dismissed"
SUMMARIZER_MODE_KEY = "summarizer-mode"
CLAUDE_KEY = "claude-api-key"
OPENAI_KEY = "openai-api-key"


class KeyValueStore:
    """JSON 文件支持的字符串键值存储

    path 为 None 时仅保存在内存中。每次写入立即落盘；
    文件缺失或损坏时视为空存储。
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._data: dict[str, str] = {}
        self._load()

    def _load(self):
        """从文件加载数据"""
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                self._data = {str(k): str(v) for k, v in data.items()}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"加载状态文件失败: {e}")
            self._data = {}

    def _save(self):
        """写入临时文件后原子替换"""
        if not self.path:
            return
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = f.name
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"保存状态文件失败: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._data[key] = str(value)
        self._save()

    def remove(self, key: str):
        if self._data.pop(key, None) is not None:
            self._save()

    def __contains__(self, key: str) -> bool:
        return key in self._data
