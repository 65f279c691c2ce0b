"""
fetcher.py -- All external data fetching.
All sources are free. NVD optionally accepts an API key for higher rate limits.
"""

import logging
from typing import Any, Optional

import requests

from core.config import get_settings

logger = logging.getLogger("otvuln.fetcher")

NVD_API = "https://services.nvd.nist.gov/rest/json/cves/2.0"
CISA_KEV_URL = "https://www.cisa.gov/sites/default/files/feeds/known_exploited_vulnerabilities.json"
EPSS_API = "https://api.first.org/data/v1/epss"

# FIRST.org accepts up to 100 comma-separated CVE ids per EPSS call.
_EPSS_BATCH = 100

# Module-level session shared across all fetcher calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- these are known public APIs,
# 3 hops is generous and protects against open redirect / SSRF via redirect chains.
_session = requests.Session()
_session.max_redirects = 3


def search_nvd(keyword: str, api_key: Optional[str] = None) -> Optional[list[dict[str, Any]]]:
    """Search NVD for CVE records matching a vendor/model keyword string.

    Args:
        keyword: Free-text search, e.g. "honeywell c300". NVD matches every
                 word against CVE descriptions.
        api_key: Optional NVD API key override. Falls back to NVD_API_KEY from
                 settings when not provided.

    Returns the list of raw CVE dicts (possibly empty), or None when NVD could
    not be reached. Callers must tell "no CVEs" apart from "no answer".
    """
    settings = get_settings()
    effective_key = api_key or settings.nvd_api_key
    try:
        params: dict[str, Any] = {
            "keywordSearch": keyword,
            "resultsPerPage": settings.nvd_results_per_page,
        }
        headers = {"apiKey": effective_key} if effective_key else None
        resp = _session.get(NVD_API, params=params, headers=headers, timeout=settings.http_timeout_seconds)
        resp.raise_for_status()
        vulns = resp.json().get("vulnerabilities", [])
        return [v["cve"] for v in vulns if v.get("cve")]
    except (requests.RequestException, ValueError) as e:
        logger.warning("NVD keyword search failed for %r: %s", keyword, e)
        return None


def fetch_kev() -> set[str]:
    """Fetch CISA Known Exploited Vulnerabilities catalog and return the CVE ID set.

    Pure stateless function -- fetches from CISA on every call and returns
    the result directly. The API lifespan loads it once onto app.state.

    Returns an empty set on network failure so callers always get a valid set.
    """
    try:
        resp = _session.get(CISA_KEV_URL, timeout=get_settings().http_timeout_seconds)
        resp.raise_for_status()
        entries = resp.json().get("vulnerabilities", [])
        return {e["cveID"] for e in entries}
    except (requests.RequestException, ValueError) as e:
        logger.warning("Could not fetch CISA KEV feed: %s", e)
        return set()


def fetch_epss(cve_ids: list[str]) -> dict[str, dict[str, float]]:
    """Fetch EPSS exploitation probabilities for many CVEs in as few calls as possible.

    Returns {cve_id: {"score": float, "percentile": float}}. CVEs FIRST.org
    has no score for are absent from the result. A failed batch is logged and
    skipped; scores from earlier batches are kept.
    """
    scores: dict[str, dict[str, float]] = {}
    for start in range(0, len(cve_ids), _EPSS_BATCH):
        batch = cve_ids[start : start + _EPSS_BATCH]
        try:
            resp = _session.get(
                EPSS_API,
                params={"cve": ",".join(batch)},
                timeout=get_settings().http_timeout_seconds,
            )
            resp.raise_for_status()
            for entry in resp.json().get("data", []):
                scores[entry["cve"]] = {
                    "score": float(entry.get("epss", 0)),
                    "percentile": float(entry.get("percentile", 0)),
                }
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.warning("EPSS fetch failed for %d CVE(s): %s", len(batch), e)
    return scores
