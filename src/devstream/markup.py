"""HTML 片段处理"""

import re
from typing import Optional

from bs4 import BeautifulSoup


def strip_html(html: Optional[str]) -> str:
    """去除全部标签，仅保留文本"""
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text).strip()


def first_image_src(html: Optional[str]) -> Optional[str]:
    """返回 HTML 片段中第一个 <img> 的 src"""
    if not html or "<img" not in html.lower():
        return None
    soup = BeautifulSoup(html, "lxml")
    img = soup.find("img", src=True)
    if img is None:
        return None
    src = img["src"].strip()
    return src or None
