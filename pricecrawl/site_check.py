"""Check robots.txt and policy pages of the crawl target before running."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urljoin

import requests

from pricecrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

REQUEST_TIMEOUT = 15
POLICY_PATHS = ("/terms", "/terms-of-service", "/tos", "/datenschutz", "/impressum", "/agb")
PHP_ERROR_MARKERS = ("Fatal error", "Warning:", "Notice:")
NOINDEX_MARKERS = (
    '<meta name="robots" content="noindex',
    '<meta content="noindex" name="robots"',
)
RESTRICTION_TERMS = ("scraping", "crawling", "automated access", "bot", "automatisierte")


class Verdict(str, Enum):
    """Overall crawl recommendation."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass
class SiteReport:
    base_url: str
    robots_found: bool = False
    robots_body: str = ""
    disallow_all: bool = False
    robots_php_error: bool = False
    main_page_ok: bool = False
    meta_noindex: bool = False
    policy_url: str | None = None
    crawl_restrictions: bool = False

    @property
    def verdict(self) -> Verdict:
        if self.crawl_restrictions:
            return Verdict.RED
        if self.robots_found and not self.disallow_all:
            return Verdict.GREEN
        return Verdict.YELLOW


def check_site(
    base_url: str,
    *,
    user_agent: str,
    http: Any | None = None,
    logger: logging.Logger | None = None,
) -> SiteReport:
    """Fetch robots.txt, the start page and common policy pages of *base_url*.

    *http* is anything with a ``requests``-compatible ``get``; a fresh
    ``requests.Session`` is used when omitted.
    """

    log = logger or LOGGER
    client = http or requests.Session()
    headers = {"User-Agent": user_agent}
    report = SiteReport(base_url=base_url)

    robots = client.get(urljoin(base_url, "/robots.txt"), headers=headers, timeout=REQUEST_TIMEOUT)
    if robots.status_code == 200:
        report.robots_found = True
        report.robots_body = robots.text
        report.disallow_all = any(
            line.strip().lower() == "disallow: /" for line in robots.text.splitlines()
        )
        if any(marker in robots.text for marker in PHP_ERROR_MARKERS):
            log.warning("robots.txt contains PHP errors, not robots directives")
            report.robots_php_error = True
            report.robots_found = False
    else:
        log.warning("Failed to fetch robots.txt: HTTP %s", robots.status_code)

    main_page = client.get(base_url, headers=headers, timeout=REQUEST_TIMEOUT)
    if main_page.status_code == 200:
        report.main_page_ok = True
        report.meta_noindex = any(marker in main_page.text for marker in NOINDEX_MARKERS)
    else:
        log.warning("Failed to fetch main page: HTTP %s", main_page.status_code)

    for path in POLICY_PATHS:
        policy_url = urljoin(base_url, path)
        try:
            response = client.get(policy_url, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            log.debug("Policy page %s unreachable: %s", policy_url, exc)
            continue
        if response.status_code != 200:
            continue
        report.policy_url = policy_url
        content = response.text.lower()
        report.crawl_restrictions = any(term in content for term in RESTRICTION_TERMS)
        break

    log.info(
        "Site check | url=%s robots=%s disallow_all=%s noindex=%s policy=%s restrictions=%s verdict=%s",
        base_url,
        report.robots_found,
        report.disallow_all,
        report.meta_noindex,
        report.policy_url,
        report.crawl_restrictions,
        report.verdict.value,
    )
    return report


__all__ = ["SiteReport", "Verdict", "check_site"]
