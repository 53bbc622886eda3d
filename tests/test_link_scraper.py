"""Tests for LinkScraper link extraction and search URL expansion."""

from __future__ import annotations

from crawler_notifier.config import CrawlerConfig
from crawler_notifier.scraper.link_scraper import LinkScraper, dedupe_urls

PAGE = """
<html><body>
  <nav><a class="menu" href="/ohje">Help</a></nav>
  <div class="results">
    <a class="item" href="/vi/101">Bike</a>
    <a class="item" href="https://www.tori.fi/vi/102">Sofa</a>
    <a class="item" href="/vi/101">Bike again</a>
    <a class="item" href="#top">Top</a>
    <a class="item" href="javascript:void(0)">JS</a>
    <a class="item" href="/mainos/999">Ad</a>
    <a class="item">No href</a>
  </div>
</body></html>
"""


def make_scraper(**overrides) -> LinkScraper:
    fields = {
        "name": "tori",
        "urls": ["https://www.tori.fi/koko_suomi?q={term}"],
        "link_selectors": ["a.item"],
        "search_terms": ["polkupyörä"],
    }
    fields.update(overrides)
    return LinkScraper(CrawlerConfig(**fields))


def test_relative_links_are_resolved_and_deduplicated():
    links = make_scraper().extract_links(PAGE, "https://www.tori.fi/koko_suomi?q=x")

    assert links == [
        "https://www.tori.fi/vi/101",
        "https://www.tori.fi/vi/102",
        "https://www.tori.fi/mainos/999",
    ]


def test_falls_back_to_next_selector():
    scraper = make_scraper(link_selectors=["article.listing a", "a.item"])

    links = scraper.extract_links(PAGE, "https://www.tori.fi/")

    assert "https://www.tori.fi/vi/101" in links


def test_no_matching_selector_returns_empty():
    scraper = make_scraper(link_selectors=["div.nothing a"])

    assert scraper.extract_links(PAGE, "https://www.tori.fi/") == []


def test_contains_and_excludes_filters():
    scraper = make_scraper(href_contains=["/vi/", "/mainos/"], href_excludes=["/mainos/"])

    links = scraper.extract_links(PAGE, "https://www.tori.fi/")

    assert links == ["https://www.tori.fi/vi/101", "https://www.tori.fi/vi/102"]


def test_selector_with_only_filtered_links_falls_through():
    scraper = make_scraper(link_selectors=["a.menu", "a.item"], href_contains=["/vi/"])

    links = scraper.extract_links(PAGE, "https://www.tori.fi/")

    assert links == ["https://www.tori.fi/vi/101", "https://www.tori.fi/vi/102"]


def test_max_results_truncates():
    scraper = make_scraper(max_results=2)

    assert len(scraper.extract_links(PAGE, "https://www.tori.fi/")) == 2


def test_search_terms_are_url_encoded():
    scraper = make_scraper(search_terms=["test automation", "c++"])

    targets = scraper.build_search_urls()

    assert targets == [
        ("test automation", "https://www.tori.fi/koko_suomi?q=test+automation"),
        ("c++", "https://www.tori.fi/koko_suomi?q=c%2B%2B"),
    ]


def test_explicit_terms_override_configured_ones():
    targets = make_scraper().build_search_urls(["sohva"])

    assert targets == [("sohva", "https://www.tori.fi/koko_suomi?q=sohva")]


def test_plain_urls_are_fetched_once():
    scraper = make_scraper(
        urls=["https://krapinpaja.fi/tapahtumat/"], search_terms=["ignored"],
    )

    assert scraper.build_search_urls() == [
        ("https://krapinpaja.fi/tapahtumat/", "https://krapinpaja.fi/tapahtumat/"),
    ]


def test_dedupe_keeps_first_seen_order():
    assert dedupe_urls(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
