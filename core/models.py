from dataclasses import dataclass, field
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Risk levels in descending order. Index doubles as the sort rank.
RISK_LEVELS = ("critical", "high", "medium", "low", "none")


@dataclass
class ControlSystemContext:
    controller_type: Optional[str] = None
    controller_make: Optional[str] = None
    controller_model: Optional[str] = None
    firmware_version: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None

    @property
    def vendor(self) -> Optional[str]:
        return self.controller_make or self.manufacturer

    @property
    def product(self) -> Optional[str]:
        return self.controller_model or self.model


@dataclass
class AssetDescriptor:
    """Partial view of a caller's asset. Only id is needed to take part in a batch."""

    id: Optional[str] = None
    tag_number: Optional[str] = None
    name: Optional[str] = None
    control_system: Optional[ControlSystemContext] = None


@dataclass
class VulnerabilityFinding:
    cve_id: str
    description: str
    cvss_score: Optional[float] = None
    severity: str = "UNKNOWN"
    cvss_vector: Optional[str] = None
    is_kev: bool = False
    epss_score: Optional[float] = None
    epss_percentile: Optional[float] = None
    published: Optional[str] = None


@dataclass
class AssetVulnerabilityEnrichment:
    asset_id: str
    tag_number: Optional[str]
    vendor: str
    model: Optional[str]
    search_query: str
    vulnerabilities: list[VulnerabilityFinding] = field(default_factory=list)
    total_cves: int = 0
    critical_count: int = 0
    high_count: int = 0
    kev_count: int = 0
    max_cvss: Optional[float] = None
    max_epss: Optional[float] = None
    risk_level: str = "none"  # critical / high / medium / low / none
    enriched_at: str = ""


@dataclass
class VulnerabilitySummary:
    total_assets: int = 0
    assets_with_vulnerabilities: int = 0
    total_cves: int = 0
    unique_cves: int = 0
    critical_count: int = 0
    high_count: int = 0
    kev_count: int = 0
    risk_levels: dict[str, int] = field(default_factory=lambda: {level: 0 for level in RISK_LEVELS})
    highest_risk_assets: list[str] = field(default_factory=list)
    top_cves: list[str] = field(default_factory=list)
