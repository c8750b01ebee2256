"""
YouTube content fetching.

Finds the newest video of a channel without a YouTube API key:

1. Resolve the channel id from the public channel page (skipped when the
   id is configured).
2. Read the channel's public Atom feed and take the first entry.
3. Try to download captions with youtube-transcript-api; fall back to the
   video description when none are available.
"""

import asyncio
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

import requests
from youtube_transcript_api import YouTubeTranscriptApi

from .errors import FetchError, ErrorCode
from .logging import get_logger
from .models import VideoItem
from .utils import collapse_whitespace

logger = get_logger("youtube")

CHANNEL_PAGE_URL = "https://www.youtube.com/@{handle}"
FEED_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "pt-BR,pt;q=0.9",
}
FEED_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; video-digest/1.0)",
    "Accept": "application/xml, text/xml, */*",
}

# Tried in order against the channel page HTML
CHANNEL_ID_PATTERNS = [
    re.compile(r'"externalId":"(UC[a-zA-Z0-9_-]{22})"'),
    re.compile(r'<link rel="canonical" href="https://www\.youtube\.com/channel/(UC[a-zA-Z0-9_-]{22})"'),
    re.compile(r'"channelId":"(UC[a-zA-Z0-9_-]{22})"'),
    re.compile(r'channel/(UC[a-zA-Z0-9_-]{22})'),
]

FEED_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "yt": "http://www.youtube.com/xml/schemas/2015",
    "media": "http://search.yahoo.com/mrss/",
}


def extract_channel_id(html: str) -> Optional[str]:
    """Return the first channel id found in a channel page, if any."""
    for pattern in CHANNEL_ID_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def parse_latest_entry(feed_xml: str) -> Dict[str, Any]:
    """
    Parse the channel Atom feed and return the newest entry's fields.

    Raises:
        FetchError: FEED_INVALID on malformed XML, FEED_EMPTY without entries
    """
    try:
        root = ET.fromstring(feed_xml)
    except ET.ParseError as e:
        raise FetchError(ErrorCode.FEED_INVALID, f"Feed XML could not be parsed: {e}")

    entry = root.find("atom:entry", FEED_NS)
    if entry is None:
        raise FetchError(ErrorCode.FEED_EMPTY, "No videos found in the channel feed")

    video_id = entry.findtext("yt:videoId", default="", namespaces=FEED_NS).strip()
    if not video_id:
        raise FetchError(ErrorCode.FEED_INVALID, "Feed entry has no video id")

    thumbnail = entry.find("media:group/media:thumbnail", FEED_NS)

    return {
        "video_id": video_id,
        "title": entry.findtext("atom:title", default="", namespaces=FEED_NS).strip(),
        "published_at": entry.findtext("atom:published", default="", namespaces=FEED_NS).strip(),
        "description": entry.findtext("media:group/media:description", default="", namespaces=FEED_NS).strip(),
        "thumbnail": thumbnail.get("url", "") if thumbnail is not None else "",
    }


class YouTubeFetcher:
    """Fetches the newest video of one channel."""

    def __init__(
        self,
        channel_handle: Optional[str] = None,
        channel_id: Optional[str] = None,
        transcript_language: str = "pt",
        timeout: float = 15,
    ):
        self.channel_handle = (channel_handle or "").lstrip("@")
        self.channel_id = channel_id
        self.transcript_language = transcript_language
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "YouTubeFetcher":
        source = config.get("source", {})
        return cls(
            channel_handle=source.get("channel_handle"),
            channel_id=source.get("channel_id"),
            transcript_language=source.get("transcript_language", "pt"),
            timeout=config.get("timeouts", {}).get("fetch", 15),
        )

    async def fetch_latest_item(self) -> VideoItem:
        """
        Resolve, fetch and enrich the newest video.

        Raises:
            FetchError: If the channel or its newest video cannot be found
        """
        return await asyncio.to_thread(self.fetch_latest_item_sync)

    def fetch_latest_item_sync(self) -> VideoItem:
        channel_id = self.channel_id
        if channel_id:
            logger.info("Using configured channel id: %s", channel_id)
        else:
            channel_id = self.resolve_channel_id(self.channel_handle)
            logger.info("Tip: set YOUTUBE_CHANNEL_ID=%s to skip the channel page lookup", channel_id)

        entry = self.fetch_latest_from_feed(channel_id)
        transcript = self.fetch_transcript(entry["video_id"])

        return VideoItem(
            video_id=entry["video_id"],
            title=entry["title"],
            url=WATCH_URL.format(video_id=entry["video_id"]),
            published_at=entry["published_at"],
            description=entry["description"],
            thumbnail=entry["thumbnail"],
            transcript=transcript,
        )

    def resolve_channel_id(self, handle: str) -> str:
        """
        Scrape the channel page for its id.

        Raises:
            FetchError: CHANNEL_NOT_FOUND if no id is present in the page
        """
        if not handle:
            raise FetchError(
                ErrorCode.CHANNEL_NOT_FOUND,
                "Neither YOUTUBE_CHANNEL_ID nor YOUTUBE_CHANNEL_HANDLE is set"
            )

        logger.info("Looking up channel id for @%s", handle)
        html = self._get(CHANNEL_PAGE_URL.format(handle=handle), BROWSER_HEADERS)

        channel_id = extract_channel_id(html)
        if not channel_id:
            raise FetchError(
                ErrorCode.CHANNEL_NOT_FOUND,
                f"Could not extract the channel id for @{handle}. "
                "Set YOUTUBE_CHANNEL_ID in .env instead."
            )

        logger.info("Channel id found: %s", channel_id)
        return channel_id

    def fetch_latest_from_feed(self, channel_id: str) -> Dict[str, Any]:
        feed_url = FEED_URL.format(channel_id=channel_id)
        logger.info("Fetching feed: %s", feed_url)

        entry = parse_latest_entry(self._get(feed_url, FEED_HEADERS))
        logger.info("Latest video: \"%s\" (%s), published %s",
                    entry["title"], entry["video_id"], entry["published_at"])
        return entry

    def fetch_transcript(self, video_id: str) -> Optional[str]:
        """
        Download captions, preferring the configured language.

        Returns None when no usable transcript exists; the description is
        then used instead.
        """
        logger.info("Fetching transcript for %s", video_id)
        api = YouTubeTranscriptApi()

        try:
            try:
                fetched = api.fetch(video_id, languages=[self.transcript_language])
            except Exception:
                logger.warning("No '%s' transcript, trying other languages...", self.transcript_language)
                transcript = next(iter(api.list(video_id)))
                fetched = transcript.fetch()
            text = collapse_whitespace(" ".join(snippet.text for snippet in fetched))
        except Exception as e:
            logger.warning("Transcript not available (%s), using the description", e)
            return None

        if not text:
            logger.warning("Transcript is empty, using the description")
            return None

        logger.info("Transcript extracted: %d characters", len(text))
        return text

    def _get(self, url: str, headers: Dict[str, str]) -> str:
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.Timeout:
            raise FetchError(ErrorCode.FETCH_NETWORK_ERROR, f"Timed out after {self.timeout}s: {url}")
        except requests.RequestException as e:
            raise FetchError(ErrorCode.FETCH_NETWORK_ERROR, str(e))
        return response.text
