"""
enricher.py — Correlates an asset's vendor/model with NVD, CISA KEV and EPSS
and rolls per-asset results up into a fleet summary.

enrich_asset_vulnerabilities() does network I/O through core.fetcher.
summarize_vulnerabilities() is pure.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from .fetcher import fetch_epss, search_nvd
from .models import (
    RISK_LEVELS,
    AssetDescriptor,
    AssetVulnerabilityEnrichment,
    VulnerabilityFinding,
    VulnerabilitySummary,
)

logger = logging.getLogger("otvuln.enricher")

_HIGHEST_RISK_LIMIT = 5
_TOP_CVES_LIMIT = 10

# ---------------------------------------------------------------------------
# NVD record extraction
# ---------------------------------------------------------------------------


def _extract_cvss(cve: dict) -> tuple[Optional[float], str, Optional[str]]:
    """Return (score, severity, vector) from the newest CVSS version present."""
    metrics = cve.get("metrics", {})
    for key in ("cvssMetricV31", "cvssMetricV30", "cvssMetricV2"):
        if metrics.get(key):
            entry = metrics[key][0]
            cvss_data = entry.get("cvssData", {})
            severity = (cvss_data.get("baseSeverity") or entry.get("baseSeverity") or "UNKNOWN").upper()
            return cvss_data.get("baseScore"), severity, cvss_data.get("vectorString")
    return None, "UNKNOWN", None


def _extract_description(cve: dict) -> str:
    for desc in cve.get("descriptions", []):
        if desc.get("lang") == "en":
            return desc.get("value", "")
    return ""


def _to_finding(cve: dict, kev_set: set[str], epss: dict[str, dict[str, float]]) -> VulnerabilityFinding:
    cve_id = cve.get("id", "")
    score, severity, vector = _extract_cvss(cve)
    epss_entry = epss.get(cve_id, {})
    return VulnerabilityFinding(
        cve_id=cve_id,
        description=_extract_description(cve),
        cvss_score=score,
        severity=severity,
        cvss_vector=vector,
        is_kev=cve_id in kev_set,
        epss_score=epss_entry.get("score"),
        epss_percentile=epss_entry.get("percentile"),
        published=cve.get("published"),
    )


def _finding_rank(finding: VulnerabilityFinding) -> tuple[bool, float, float]:
    return (finding.is_kev, finding.cvss_score or 0.0, finding.epss_score or 0.0)


# ---------------------------------------------------------------------------
# Risk rating
# ---------------------------------------------------------------------------


def _risk_level(findings: list[VulnerabilityFinding]) -> str:
    """Rate an asset by its worst finding.

    critical: any KEV entry or CVSS >= 9.0
    high:     any CVSS >= 7.0 or EPSS >= 0.5
    medium:   any CVSS >= 4.0
    low:      findings exist but none of the above
    none:     no findings
    """
    if not findings:
        return "none"
    max_cvss = max((f.cvss_score or 0.0) for f in findings)
    max_epss = max((f.epss_score or 0.0) for f in findings)
    if any(f.is_kev for f in findings) or max_cvss >= 9.0:
        return "critical"
    if max_cvss >= 7.0 or max_epss >= 0.5:
        return "high"
    if max_cvss >= 4.0:
        return "medium"
    return "low"


def _build_query(vendor: str, model: Optional[str]) -> str:
    return f"{vendor} {model}".strip() if model else vendor.strip()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


def enrich_asset_vulnerabilities(
    asset: AssetDescriptor,
    kev_set: set[str],
) -> Optional[AssetVulnerabilityEnrichment]:
    """Look up known vulnerabilities for one asset's controller vendor/model.

    Returns None when the asset carries no vendor or NVD could not be reached.
    An NVD answer with zero matches yields an enrichment with no findings.
    """
    control = asset.control_system
    vendor = control.vendor if control else None
    if not vendor:
        logger.debug("Asset %s has no controller vendor, skipping lookup", asset.id)
        return None
    model = control.product

    query = _build_query(vendor, model)
    raw_cves = search_nvd(query)
    if raw_cves is None:
        return None

    cve_ids = [c["id"] for c in raw_cves if c.get("id")]
    epss = fetch_epss(cve_ids) if cve_ids else {}

    findings = [_to_finding(cve, kev_set, epss) for cve in raw_cves if cve.get("id")]
    findings.sort(key=_finding_rank, reverse=True)

    scores = [f.cvss_score for f in findings if f.cvss_score is not None]
    epss_scores = [f.epss_score for f in findings if f.epss_score is not None]

    logger.info("Enriched %s (%s): %d CVE(s)", asset.id, query, len(findings))

    return AssetVulnerabilityEnrichment(
        asset_id=asset.id or "",
        tag_number=asset.tag_number,
        vendor=vendor,
        model=model,
        search_query=query,
        vulnerabilities=findings,
        total_cves=len(findings),
        critical_count=sum(1 for f in findings if f.severity == "CRITICAL"),
        high_count=sum(1 for f in findings if f.severity == "HIGH"),
        kev_count=sum(1 for f in findings if f.is_kev),
        max_cvss=max(scores) if scores else None,
        max_epss=max(epss_scores) if epss_scores else None,
        risk_level=_risk_level(findings),
        enriched_at=datetime.now(timezone.utc).isoformat(),
    )


def summarize_vulnerabilities(enrichments: dict[str, AssetVulnerabilityEnrichment]) -> VulnerabilitySummary:
    """Aggregate per-asset enrichments into a fleet-level summary. No I/O."""
    summary = VulnerabilitySummary(total_assets=len(enrichments))
    cve_assets: Counter[str] = Counter()

    for enrichment in enrichments.values():
        if enrichment.total_cves:
            summary.assets_with_vulnerabilities += 1
        summary.total_cves += enrichment.total_cves
        summary.critical_count += enrichment.critical_count
        summary.high_count += enrichment.high_count
        summary.kev_count += enrichment.kev_count
        if enrichment.risk_level in summary.risk_levels:
            summary.risk_levels[enrichment.risk_level] += 1
        # Count each CVE once per asset even if NVD returned it twice.
        cve_assets.update({f.cve_id for f in enrichment.vulnerabilities})

    summary.unique_cves = len(cve_assets)

    ranked = sorted(
        (e for e in enrichments.items() if e[1].risk_level != "none"),
        key=lambda item: (
            RISK_LEVELS.index(item[1].risk_level) if item[1].risk_level in RISK_LEVELS else len(RISK_LEVELS),
            -item[1].kev_count,
            -(item[1].max_cvss or 0.0),
        ),
    )
    summary.highest_risk_assets = [asset_id for asset_id, _ in ranked[:_HIGHEST_RISK_LIMIT]]
    # most_common keeps first-seen order among ties.
    summary.top_cves = [cve_id for cve_id, _ in cve_assets.most_common(_TOP_CVES_LIMIT)]
    return summary
