"""
HTTP page fetcher used by the ranking sub-step.
"""

import re

import aiohttp
import structlog

_SCRIPT = re.compile(r"<script[^>]*>.*?</script>", re.DOTALL | re.IGNORECASE)
_STYLE = re.compile(r"<style[^>]*>.*?</style>", re.DOTALL | re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


def html_to_text(html: str) -> str:
    """Strip scripts, styles and tags; collapse whitespace."""
    text = _SCRIPT.sub(" ", html)
    text = _STYLE.sub(" ", text)
    text = _TAG.sub(" ", text)
    return " ".join(text.split())


class HttpPageFetcher:
    """
    PageFetcherProtocol implementation using aiohttp.

    Args:
        timeout: Total request timeout in seconds
        max_chars: Upper bound on returned text
    """

    def __init__(self, timeout: float = 15.0, max_chars: int = 50000):
        self.timeout = timeout
        self.max_chars = max_chars
        self.logger = structlog.get_logger().bind(component="page_fetcher")

    async def fetch(self, url: str) -> str:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                response.raise_for_status()
                content = await response.text()
                content_type = response.headers.get("Content-Type", "")

        text = html_to_text(content) if "html" in content_type else content
        self.logger.debug("page_fetched", url=url, length=len(text))
        return text[: self.max_chars]
