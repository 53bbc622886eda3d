"""Crawler Notifier — Link Scraper.

Extracts listing links from a search-result or category page. Selectors,
URL filters and result limits come from the crawler's entry in
settings.yaml; HTML is parsed with selectolax.
"""

from __future__ import annotations

from typing import Iterable
from urllib.parse import quote_plus, urljoin

from selectolax.parser import HTMLParser

from crawler_notifier.config import CrawlerConfig
from crawler_notifier.utils.logger import get_logger

logger = get_logger(__name__)


def dedupe_urls(urls: Iterable[str]) -> list[str]:
    """Remove duplicates, keeping first-seen order."""
    return list(dict.fromkeys(urls))


class LinkScraper:
    """Pulls listing URLs out of a page using configured CSS selectors.

    Selectors are tried in order; the first one that yields at least one
    acceptable link wins.

    Attributes:
        config: The crawler's configuration.
    """

    def __init__(self, config: CrawlerConfig) -> None:
        self.config = config

    def build_search_urls(self, search_terms: list[str] | None = None) -> list[tuple[str, str]]:
        """Expand the crawler's URLs into (label, url) pairs to fetch.

        ``{term}`` URLs are expanded once per search term, URL-encoded.
        Plain URLs are fetched once and labelled with themselves.

        Args:
            search_terms: Terms overriding the configured ones.

        Returns:
            List of (label, url) tuples in fetch order.
        """
        terms = search_terms or self.config.search_terms
        targets: list[tuple[str, str]] = []
        for template in self.config.urls:
            if "{term}" in template:
                for term in terms:
                    targets.append((term, template.replace("{term}", quote_plus(term))))
            else:
                targets.append((template, template))
        return targets

    def extract_links(self, html: str, page_url: str) -> list[str]:
        """Parse a page and return the listing URLs it links to.

        Args:
            html: Raw page HTML.
            page_url: URL the HTML came from, for resolving relative links.

        Returns:
            Absolute, filtered, de-duplicated URLs, at most max_results.
        """
        tree = HTMLParser(html)

        for selector in self.config.link_selectors:
            try:
                nodes = tree.css(selector)
            except ValueError as e:
                logger.debug("Selector %s failed, trying next: %s", selector, e)
                continue

            hrefs = (node.attributes.get("href") for node in nodes)
            links = [
                urljoin(page_url, href.strip())
                for href in hrefs
                if href and href.strip() and not href.startswith(("#", "javascript:", "mailto:"))
            ]
            links = dedupe_urls(link for link in links if self._accept(link))

            if links:
                logger.debug(
                    "Found %d links using selector: %s", len(links), selector,
                )
                if self.config.max_results > 0:
                    links = links[: self.config.max_results]
                return links

        logger.warning("No links found on %s with any selector", page_url)
        return []

    def _accept(self, url: str) -> bool:
        """Apply the crawler's include/exclude URL fragments."""
        if self.config.href_contains and not any(
            fragment in url for fragment in self.config.href_contains
        ):
            return False
        return not any(fragment in url for fragment in self.config.href_excludes)
