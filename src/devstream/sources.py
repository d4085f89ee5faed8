"""RSS 订阅源定义

列表顺序即轮询交错顺序：
Cloudflare[0] → Meta[0] → Google[0] → ... → GitHub[0] → Cloudflare[1] → ...
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class BlogSource:
    """订阅源定义"""

    name: str
    rss_url: str
    logo_url: str


BLOG_SOURCES = [
    BlogSource(
        name="Cloudflare Blog",
        rss_url="https://blog.cloudflare.com/rss/",
        logo_url="https://www.cloudflare.com/favicon-32x32.png",
    ),
    BlogSource(
        name="Meta Engineering",
        rss_url="https://engineering.fb.com/feed/",
        logo_url="https://engineering.fb.com/wp-content/uploads/2021/09/meta-engineering-logo.png",
    ),
    BlogSource(
        name="Google Developers",
        rss_url="https://developers.googleblog.com/feeds/posts/default",
        logo_url="https://www.gstatic.com/images/branding/googleg/2x/googleg_standard_color_128dp.png",
    ),
    BlogSource(
        name="Discord Engineering",
        rss_url="https://discord.com/blog/rss",
        logo_url="https://discord.com/assets/favicon.ico",
    ),
    BlogSource(
        name="Shopify Engineering",
        rss_url="https://shopify.engineering/index.xml",
        logo_url="https://shopify.dev/favicons/favicon-32x32.png",
    ),
    BlogSource(
        name="Microsoft DevBlogs",
        rss_url="https://devblogs.microsoft.com/engineering-at-microsoft/feed/",
        logo_url="https://devblogs.microsoft.com/wp-content/uploads/sites/34/2019/02/cropped-microsoft_logo_element.png",
    ),
    BlogSource(
        name="GitHub Blog",
        rss_url="https://github.blog/feed/",
        logo_url="https://github.githubassets.com/favicons/favicon.svg",
    ),
]


def get_source(name: str) -> BlogSource:
    """按名称查找订阅源"""
    for source in BLOG_SOURCES:
        if source.name == name:
            return source
    raise KeyError(f"未知订阅源: {name}")
