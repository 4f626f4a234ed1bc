# feed_parser.py
"""Download and parse RSS/Atom documents into flat candidate items."""
import calendar
import io
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union

import feedparser
import httpx

from config import settings
from errors import FetchError, ParseError

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(html: Optional[str]) -> Optional[str]:
    """Replace tags with a space, collapse whitespace, trim."""
    if not html:
        return None
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", html)).strip()


@dataclass
class ParsedItem:
    link: Optional[str] = None
    id: Optional[str] = None
    title: Optional[str] = None
    iso_date: Optional[datetime] = None
    pub_date: Optional[str] = None
    creator: Union[str, List[str], None] = None
    author: Optional[str] = None
    content_snippet: Optional[str] = None
    content: Optional[str] = None
    guid: Optional[str] = None


def _struct_to_datetime(value) -> Optional[datetime]:
    # feedparser normalizes dates to UTC struct_time
    if not value:
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def _entry_to_item(e) -> ParsedItem:
    names = [a.get("name") for a in (e.get("authors") or []) if a.get("name")]
    creator: Union[str, List[str], None] = None
    if len(names) > 1:
        creator = names
    elif names:
        creator = names[0]

    content = None
    if e.get("content"):
        content = e.content[0].get("value")
    if not content:
        content = e.get("summary") or e.get("description")

    snippet = strip_html(e.get("summary") or content)

    return ParsedItem(
        link=e.get("link") or None,
        id=e.get("id") or None,
        title=e.get("title") or None,
        iso_date=_struct_to_datetime(e.get("published_parsed") or e.get("updated_parsed")),
        pub_date=e.get("published") or e.get("updated") or None,
        creator=creator,
        author=e.get("author") or None,
        content_snippet=snippet or None,
        content=content or None,
        guid=e.get("id") or None,
    )


class FeedParser:
    """Fetches a feed over HTTP (bounded by a timeout) and parses it."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.FEED_FETCH_TIMEOUT
        self.client = client

    def fetch(self, url: str) -> bytes:
        headers = {"User-Agent": settings.FEED_USER_AGENT}
        try:
            if self.client is not None:
                resp = self.client.get(url, headers=headers, timeout=self.timeout, follow_redirects=True)
            else:
                resp = httpx.get(url, headers=headers, timeout=self.timeout, follow_redirects=True)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {url} after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP {e.response.status_code} fetching {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Error fetching {url}: {e}") from e
        return resp.content

    def parse(self, document: Union[bytes, str]) -> List[ParsedItem]:
        if isinstance(document, str):
            document = document.encode("utf-8")
        # a stream keeps feedparser from treating the input as a URL or file path to open
        parsed = feedparser.parse(io.BytesIO(document))
        # bozo documents that still yield entries are usable; only give up when nothing was recovered
        if parsed.bozo and not parsed.entries and not parsed.get("version"):
            raise ParseError(f"Malformed feed document: {parsed.get('bozo_exception')}")
        return [_entry_to_item(e) for e in parsed.entries]

    def parse_url(self, url: str) -> List[ParsedItem]:
        return self.parse(self.fetch(url))
