"""Crawler Notifier — Scraper Package.

Finds listing URLs on the crawled sites. Components:
  - ListingClient: Async HTTP client with retry and rate limiting
  - LinkScraper: Selector-driven link extraction
  - CrawlerPipeline: Scrape-then-dispatch run for one crawler
"""

from crawler_notifier.scraper.client import ListingClient
from crawler_notifier.scraper.link_scraper import LinkScraper
from crawler_notifier.scraper.pipeline import CrawlerPipeline

__all__ = [
    "ListingClient",
    "LinkScraper",
    "CrawlerPipeline",
]
