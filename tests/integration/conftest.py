"""Shared fixtures for integration tests."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from video_digest.config import load_config

CHANNEL_ID = "UCabcdefghijklmnopqrstuv"

FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015"
      xmlns:media="http://search.yahoo.com/mrss/"
      xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <yt:videoId>newest01</yt:videoId>
    <title>Trust in the Lord</title>
    <published>2026-10-18T09:00:00+00:00</published>
    <media:group>
      <media:description>Proverbs 3:5-6</media:description>
    </media:group>
  </entry>
</feed>
"""

ENV = {
    "EVOLUTION_API_URL": "http://evolution.local:8080",
    "EVOLUTION_API_KEY": "evo-key",
    "EVOLUTION_INSTANCE": "devotional",
    "WHATSAPP_TARGETS": "5511999998888; 120363123456789@g.us",
    "YOUTUBE_CHANNEL_ID": CHANNEL_ID,
    "OPENAI_API_KEY": "sk-test",
}


def http_response(status_code=200, json_data=None, text=""):
    """Build a requests.Response stand-in."""
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.text = text
    return response


def transcript_snippets(*texts):
    return [SimpleNamespace(text=t) for t in texts]


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Validated configuration built from a representative environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return load_config(env=ENV)


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    async def _sleep(seconds):
        recorded_sleeps.append(seconds)
    return _sleep
