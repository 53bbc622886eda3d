"""Tests for CrawlerMonitor."""

from __future__ import annotations

from crawler_notifier.utils.health import CrawlerMetrics, CrawlerMonitor


def test_run_counters_and_summary():
    monitor = CrawlerMonitor()
    monitor.start_crawler("tori")
    monitor.record_search("tori", "arduino", 7)
    monitor.record_search("tori", "raspberry", 3)
    monitor.record_new_urls("tori", 2)
    metrics = monitor.complete_crawler("tori")

    assert metrics.searches_processed == 2
    assert metrics.total_urls_found == 10
    assert metrics.new_urls_added == 2
    assert metrics.duration_seconds is not None
    assert metrics.to_dict()["success_rate"] == "100.00%"


def test_errors_turn_status_to_warning():
    monitor = CrawlerMonitor()
    monitor.start_crawler("duunitori")
    assert monitor.get_status()["status"] == "healthy"

    monitor.record_error("duunitori", "timeout")
    status = monitor.get_status()

    assert status["status"] == "warning"
    assert status["details"]["crawlers_with_errors"] == ["duunitori"]
    assert status["details"]["active_crawlers"] == ["duunitori"]


def test_notifications_credit_the_crawler_that_found_the_url():
    monitor = CrawlerMonitor()
    monitor.start_crawler("tori")
    monitor.start_crawler("theseus")

    monitor.record_notification("tori", True)
    monitor.record_notification("tori", False)
    monitor.record_notification("theseus", True)

    assert monitor.notifications_sent == 2
    assert monitor.notifications_failed == 1
    assert monitor.get_metrics("tori").notifications_sent == 1
    assert monitor.get_metrics("tori").notifications_failed == 1
    assert monitor.get_metrics("theseus").notifications_sent == 1


def test_notification_before_any_crawler_is_still_counted():
    monitor = CrawlerMonitor()

    monitor.record_notification(None, True)
    monitor.record_notification("unknown", False)

    assert monitor.notifications_sent == 1
    assert monitor.notifications_failed == 1
    assert monitor.get_all_metrics() == []


def test_success_rate():
    metrics = CrawlerMetrics(crawler_name="x", searches_processed=4, errors=1)

    assert metrics.success_rate == 75.0


def test_format_uptime():
    assert CrawlerMonitor._format_uptime(59) == "0m"
    assert CrawlerMonitor._format_uptime(3 * 3600 + 120) == "3h 2m"
    assert CrawlerMonitor._format_uptime(26 * 3600) == "1d 2h 0m"
