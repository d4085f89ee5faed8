"""文章数据模型"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Article:
    """规范化后的文章

    url 同时作为唯一标识与摘要缓存键。published_date 保留订阅源原始字符串，
    不做解析。raw_content 只作为摘要输入，从不直接展示。
    """

    url: str
    title: str
    image_url: Optional[str]
    published_date: str
    source_name: str
    source_logo_url: str
    raw_content: Optional[str] = None

    def to_dict(self) -> dict:
        """转换为字典格式（不含 raw_content）"""
        return {
            "url": self.url,
            "title": self.title,
            "image_url": self.image_url,
            "published_date": self.published_date,
            "source_name": self.source_name,
            "source_logo_url": self.source_logo_url,
        }
