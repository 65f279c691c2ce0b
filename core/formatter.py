"""
formatter.py — Renders asset enrichments and batch summaries to terminal output or JSON.
"""

import json
import os
import sys
from dataclasses import asdict
from typing import Any, Optional

from pydantic.alias_generators import to_camel

from .models import AssetVulnerabilityEnrichment, VulnerabilitySummary
from .pipeline import BatchResult

W = 68  # output width
_MAX_FINDINGS_SHOWN = 10

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


RISK_COLORS = {
    "critical": "\033[91m",  # red
    "high": "\033[93m",  # yellow
    "medium": "\033[94m",  # blue
    "low": "\033[92m",  # green
}


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _risk_color(level: str) -> str:
    return RISK_COLORS.get(level, "") if _color_active() else ""


def _section(title: str) -> str:
    return f"\n  {_bold()}{title}{_reset()}\n  {'─' * (W - 2)}"


def _fmt_score(value: Optional[float], digits: int = 1) -> str:
    return "n/a" if value is None else f"{value:.{digits}f}"


# ---------------------------------------------------------------------------
# Terminal renderers
# ---------------------------------------------------------------------------


def format_enrichment(enrichment: AssetVulnerabilityEnrichment) -> str:
    """Render one asset's findings as a block of terminal text."""
    color = _risk_color(enrichment.risk_level)
    reset = _reset()
    label = enrichment.tag_number or enrichment.asset_id
    lines = [
        "═" * W,
        f"  {_bold()}{label}{reset}  {enrichment.search_query}",
        f"  Risk: {color}{enrichment.risk_level.upper()}{reset}"
        f"   CVEs: {enrichment.total_cves}"
        f"   Critical: {enrichment.critical_count}"
        f"   High: {enrichment.high_count}"
        f"   KEV: {enrichment.kev_count}",
        "═" * W,
    ]
    if not enrichment.vulnerabilities:
        lines.append("  No known vulnerabilities found in NVD.")
        return "\n".join(lines)

    lines.append(_section("TOP FINDINGS"))
    for finding in enrichment.vulnerabilities[:_MAX_FINDINGS_SHOWN]:
        kev = " [KEV]" if finding.is_kev else ""
        lines.append(
            f"  {finding.cve_id:<18} CVSS {_fmt_score(finding.cvss_score):>4}"
            f"  EPSS {_fmt_score(finding.epss_score, 3):>5}  {finding.severity}{kev}"
        )
    remaining = len(enrichment.vulnerabilities) - _MAX_FINDINGS_SHOWN
    if remaining > 0:
        lines.append(f"  ... and {remaining} more")
    return "\n".join(lines)


def format_summary(summary: VulnerabilitySummary, requested: int) -> str:
    """Render the fleet summary printed after a batch run."""
    lines = [
        _section("SUMMARY"),
        f"  Assets enriched:        {summary.total_assets} of {requested}",
        f"  With vulnerabilities:   {summary.assets_with_vulnerabilities}",
        f"  CVEs (unique):          {summary.total_cves} ({summary.unique_cves})",
        f"  Critical / High / KEV:  {summary.critical_count} / {summary.high_count} / {summary.kev_count}",
    ]
    levels = "  ".join(
        f"{_risk_color(level)}{level}{_reset()}={count}" for level, count in summary.risk_levels.items() if count
    )
    if levels:
        lines.append(f"  Risk levels:            {levels}")
    if summary.highest_risk_assets:
        lines.append(f"  Highest risk:           {', '.join(summary.highest_risk_assets)}")
    return "\n".join(lines)


def print_enrichment(enrichment: AssetVulnerabilityEnrichment) -> None:
    print(format_enrichment(enrichment))


def print_summary(summary: VulnerabilitySummary, requested: int) -> None:
    print(format_summary(summary, requested))


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _camel_dict(fields: list[tuple[str, Any]]) -> dict[str, Any]:
    """asdict() dict_factory: dataclass field names become camelCase keys."""
    return {to_camel(name): value for name, value in fields}


def to_json(obj) -> str:
    """Serialize an enrichment or a summary to indented camelCase JSON."""
    return json.dumps(asdict(obj, dict_factory=_camel_dict), indent=2)


def batch_to_json(result: BatchResult) -> str:
    """Serialize a batch run in the same shape as the POST /vulnerabilities body."""
    payload = {
        "enrichments": [asdict(e, dict_factory=_camel_dict) for e in result.enrichments.values()],
        "summary": asdict(result.summary, dict_factory=_camel_dict),
        "enrichedCount": result.enriched_count,
        "requestedCount": result.requested_count,
    }
    return json.dumps(payload, indent=2)
