"""Fetch a URL over HTTP(S) and return its text."""

import json
import logging
from typing import Annotated

import httpx
from langchain_core.tools import tool

LOGGER = logging.getLogger(__name__)

WEB_FETCH_TIMEOUT = 30.0
MAX_CONTENT_CHARS = 50_000


@tool
async def web_fetch(
    url: Annotated[str, "http(s) URL to fetch"],
) -> str:
    """Fetch a web page or raw file and return its text content.

    Returns JSON with url, status, content_type and content (truncated to
    50K chars). Useful for reading documentation or raw source files.

    Examples:
        web_fetch("https://docs.python.org/3/library/asyncio-task.html")
        web_fetch("https://raw.githubusercontent.com/org/repo/main/README.md")
    """
    if not url.startswith(("http://", "https://")):
        return f"Error: Only http(s) URLs are supported: {url}"

    try:
        async with httpx.AsyncClient(timeout=WEB_FETCH_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": "codingAgent/0.1"})
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        return f"Error: HTTP {e.response.status_code} fetching {url}"
    except httpx.HTTPError as e:
        LOGGER.error(f"Failed to fetch {url}: {e}")
        return f"Error: Failed to fetch {url}: {e}"

    content = response.text
    truncated = len(content) > MAX_CONTENT_CHARS
    LOGGER.info(f"Fetched {url} ({len(content)} chars)")
    return json.dumps(
        {
            "url": str(response.url),
            "status": response.status_code,
            "content_type": response.headers.get("content-type", ""),
            "content": content[:MAX_CONTENT_CHARS],
            "truncated": truncated,
        },
        ensure_ascii=False,
    )


__all__ = ["web_fetch"]
