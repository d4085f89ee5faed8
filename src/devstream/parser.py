"""订阅源解析模块

支持三种格式：
1. RSS 2.0（根元素 rss）
2. Atom（根元素 feed）
3. rss2json 代理返回的 JSON

图片按层级查找，第一个非空结果生效：
media:content → media:thumbnail → enclosure(image/*，仅 RSS) → 正文第一个 <img>
"""

import re
from typing import Any, Iterable, Optional

from lxml import etree

from .exceptions import FeedParseError
from .markup import first_image_src
from .models import Article
from .sources import BlogSource

CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
DC_NS = "http://purl.org/dc/elements/1.1/"
MEDIA_NS_MARKER = "search.yahoo.com/mrss"

IMAGE_EXTENSION_RE = re.compile(r"\.(jpe?g|png|gif|webp|avif|svg)(\?.*)?$", re.IGNORECASE)

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)


def _localname(el) -> str:
    if not isinstance(el.tag, str):
        return ""
    return etree.QName(el).localname


def _namespace(el) -> str:
    if not isinstance(el.tag, str):
        return ""
    return etree.QName(el).namespace or ""


def _children(el, name: str, namespace: Optional[str] = None) -> list:
    """直接子元素中按本地名（及命名空间）过滤"""
    return [
        child
        for child in el
        if _localname(child) == name
        and (namespace is None or _namespace(child) == namespace)
    ]


def _text(el, name: str, namespace: Optional[str] = None) -> str:
    for child in _children(el, name, namespace):
        if child.text and child.text.strip():
            return child.text.strip()
    return ""


def _media_url(item, name: str) -> Optional[str]:
    """media 命名空间下 content/thumbnail 的 url 属性（含 media:group 嵌套）"""
    for el in item.iter():
        if _localname(el) == name and MEDIA_NS_MARKER in _namespace(el):
            url = (el.get("url") or "").strip()
            if url:
                return url
    return None


def parse_xml(data: bytes, source: BlogSource, limit: int = 20) -> list[Article]:
    """解析 XML 订阅源，根元素决定 RSS 或 Atom 分支"""
    try:
        root = etree.fromstring(data, parser=_XML_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise FeedParseError(f"XML 解析失败: {e}") from e

    if root is None:
        raise FeedParseError("XML 文档为空")

    name = _localname(root)
    if name == "feed":
        return parse_atom(root, source, limit)
    if name == "rss":
        return parse_rss(root, source, limit)
    raise FeedParseError(f"无法识别的根元素: {name or root.tag}")


def parse_rss(root, source: BlogSource, limit: int = 20) -> list[Article]:
    """解析 RSS 2.0 条目"""
    items = [el for el in root.iter() if _localname(el) == "item" and not _namespace(el)]
    return [_rss_item(item, source) for item in items[:limit]]


def _rss_link(item) -> str:
    for link in _children(item, "link", ""):
        if link.text and link.text.strip():
            return link.text.strip()
    # 允许 atom:link 等带 href 的链接
    for link in _children(item, "link"):
        href = (link.get("href") or "").strip()
        if href:
            return href
    return _text(item, "guid", "")


def _rss_image(item, raw_content: str) -> Optional[str]:
    url = _media_url(item, "content") or _media_url(item, "thumbnail")
    if url:
        return url

    for enclosure in _children(item, "enclosure", ""):
        if (enclosure.get("type") or "").startswith("image/"):
            url = (enclosure.get("url") or "").strip()
            if url:
                return url

    return first_image_src(raw_content)


def _rss_item(item, source: BlogSource) -> Article:
    # RSS 2.0 元素无命名空间，避免取到 media:title、media:description
    raw_content = _text(item, "encoded", CONTENT_NS) or _text(item, "description", "")
    published = _text(item, "pubDate", "") or _text(item, "date", DC_NS)

    return Article(
        url=_rss_link(item),
        title=_text(item, "title", ""),
        image_url=_rss_image(item, raw_content),
        published_date=published,
        source_name=source.name,
        source_logo_url=source.logo_url,
        raw_content=raw_content or None,
    )


def parse_atom(root, source: BlogSource, limit: int = 20) -> list[Article]:
    """解析 Atom 条目"""
    entries = _children(root, "entry", _namespace(root))
    return [_atom_entry(entry, source) for entry in entries[:limit]]


def _atom_link(entry, ns: str) -> str:
    links = _children(entry, "link", ns)
    for link in links:
        if link.get("rel") == "alternate" and link.get("href"):
            return link.get("href").strip()
    for link in links:
        if link.get("href"):
            return link.get("href").strip()
    return ""


def _atom_content(el) -> str:
    """<content> 正文；type="xhtml" 时正文在子元素中"""
    if el.get("type") == "xhtml":
        parts = [el.text or ""]
        parts.extend(etree.tostring(child, encoding="unicode") for child in el)
        return "".join(parts).strip()
    return (el.text or "").strip()


def _atom_entry(entry, source: BlogSource) -> Article:
    # 与条目同一命名空间，排除 media:content、media:title 等
    ns = _namespace(entry)
    content = ""
    for el in _children(entry, "content", ns):
        content = _atom_content(el)
        if content:
            break
    raw_content = content or _text(entry, "summary", ns)

    image_url = (
        _media_url(entry, "content")
        or _media_url(entry, "thumbnail")
        or first_image_src(raw_content)
    )

    return Article(
        url=_atom_link(entry, ns),
        title=_text(entry, "title", ns),
        image_url=image_url,
        published_date=_text(entry, "published", ns) or _text(entry, "updated", ns),
        source_name=source.name,
        source_logo_url=source.logo_url,
        raw_content=raw_content or None,
    )


def parse_json(payload: Any, source: BlogSource, limit: int = 20) -> list[Article]:
    """解析 rss2json 返回结构"""
    if not isinstance(payload, dict):
        raise FeedParseError("JSON 响应不是对象")
    if payload.get("status") != "ok":
        message = payload.get("message") or payload.get("status")
        raise FeedParseError(f"JSON 代理返回错误: {message}")

    items = payload.get("items") or []
    if not isinstance(items, list):
        raise FeedParseError("JSON 响应缺少 items 列表")

    return [
        _json_item(item, source)
        for item in _dict_items(items)[:limit]
    ]


def _dict_items(items: Iterable[Any]) -> list[dict]:
    return [item for item in items if isinstance(item, dict)]


def _json_image(item: dict) -> Optional[str]:
    thumbnail = (item.get("thumbnail") or "").strip()
    if thumbnail:
        return thumbnail

    enclosure = item.get("enclosure")
    if isinstance(enclosure, dict):
        link = (enclosure.get("link") or "").strip()
        if link and IMAGE_EXTENSION_RE.search(link):
            return link

    return first_image_src(item.get("content") or item.get("description"))


def _json_item(item: dict, source: BlogSource) -> Article:
    raw_content = item.get("content") or item.get("description") or None
    return Article(
        url=(item.get("link") or "").strip(),
        title=(item.get("title") or "").strip(),
        image_url=_json_image(item),
        published_date=item.get("pubDate") or "",
        source_name=source.name,
        source_logo_url=source.logo_url,
        raw_content=raw_content,
    )
