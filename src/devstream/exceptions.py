"""异常定义"""


class DevStreamError(Exception):
    """DevStream 基础异常"""


class FeedFetchError(DevStreamError):
    """订阅源无法通过代理获取"""


class FeedParseError(DevStreamError):
    """订阅源内容无法解析为 RSS/Atom/JSON 文章列表"""


class SummarizerError(DevStreamError):
    """摘要后端调用失败或返回空结果"""
