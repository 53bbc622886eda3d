"""Tests for open_in_viewer."""

from __future__ import annotations

import webbrowser

import pytest

from crawler_notifier.errors import ViewerOpenError
from crawler_notifier.notifier.viewer import open_in_viewer


@pytest.mark.asyncio
async def test_opens_url(monkeypatch):
    opened = []
    monkeypatch.setattr(webbrowser, "open", lambda url: opened.append(url) or True)

    await open_in_viewer("https://www.tori.fi/vi/1")

    assert opened == ["https://www.tori.fi/vi/1"]


@pytest.mark.asyncio
async def test_no_browser_raises(monkeypatch):
    monkeypatch.setattr(webbrowser, "open", lambda url: False)

    with pytest.raises(ViewerOpenError):
        await open_in_viewer("https://a")


@pytest.mark.asyncio
async def test_browser_error_raises(monkeypatch):
    def broken(url):
        raise webbrowser.Error("could not locate runnable browser")

    monkeypatch.setattr(webbrowser, "open", broken)

    with pytest.raises(ViewerOpenError, match="runnable browser"):
        await open_in_viewer("https://a")
