"""
API request and response models for the vulnerability enrichment endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

The wire format is camelCase (assetId, tagNumber, controlSystem, ...) to match
the asset records callers already hold. alias_generator=to_camel maps those
names onto snake_case fields; populate_by_name lets route code construct
models with the Python names.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.models import (
    AssetDescriptor,
    AssetVulnerabilityEnrichment,
    ControlSystemContext,
    VulnerabilityFinding,
    VulnerabilitySummary,
)

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ControlSystemIn(BaseModel):
    """Nested controller descriptor. Only make/model drive the lookup."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    controller_type: Optional[str] = None
    controller_make: Optional[str] = None
    controller_model: Optional[str] = None
    firmware_version: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None

    def to_domain(self) -> ControlSystemContext:
        return ControlSystemContext(**self.model_dump())


class AssetIn(BaseModel):
    """A partial asset record. Every field is optional; unknown fields are ignored.

    Assets without an id are accepted here and skipped by the batch loop.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    tag_number: Optional[str] = None
    name: Optional[str] = None
    control_system: Optional[ControlSystemIn] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Union[str, int, None]) -> Optional[str]:
        """Accept numeric ids from callers whose asset store uses integer keys."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def to_domain(self) -> AssetDescriptor:
        return AssetDescriptor(
            id=self.id,
            tag_number=self.tag_number,
            name=self.name,
            control_system=self.control_system.to_domain() if self.control_system else None,
        )


class VulnerabilityBatchRequest(BaseModel):
    """Request body for POST /vulnerabilities.

    A missing or null assets key is treated as an empty list, which the
    handler rejects with 400.
    """

    assets: list[AssetIn] = Field(default_factory=list)

    @field_validator("assets", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class VulnerabilityFindingOut(BaseModel):
    model_config = _CAMEL

    cve_id: str
    description: str
    cvss_score: Optional[float]
    severity: str
    cvss_vector: Optional[str]
    is_kev: bool
    epss_score: Optional[float]
    epss_percentile: Optional[float]
    published: Optional[str]

    @classmethod
    def from_finding(cls, finding: VulnerabilityFinding) -> "VulnerabilityFindingOut":
        return cls(
            cve_id=finding.cve_id,
            description=finding.description,
            cvss_score=finding.cvss_score,
            severity=finding.severity,
            cvss_vector=finding.cvss_vector,
            is_kev=finding.is_kev,
            epss_score=finding.epss_score,
            epss_percentile=finding.epss_percentile,
            published=finding.published,
        )


class AssetEnrichmentResponse(BaseModel):
    """One asset's vulnerability picture. Returned bare by GET /vulnerabilities."""

    model_config = _CAMEL

    asset_id: str
    tag_number: Optional[str]
    vendor: str
    model: Optional[str]
    search_query: str
    vulnerabilities: list[VulnerabilityFindingOut]
    total_cves: int
    critical_count: int
    high_count: int
    kev_count: int
    max_cvss: Optional[float]
    max_epss: Optional[float]
    risk_level: str
    enriched_at: str

    @classmethod
    def from_enriched(cls, enrichment: AssetVulnerabilityEnrichment) -> "AssetEnrichmentResponse":
        """Build the response model from a core enrichment.

        Factory Method -- the mapping lives beside the output model rather
        than in the route handlers.
        """
        return cls(
            asset_id=enrichment.asset_id,
            tag_number=enrichment.tag_number,
            vendor=enrichment.vendor,
            model=enrichment.model,
            search_query=enrichment.search_query,
            vulnerabilities=[VulnerabilityFindingOut.from_finding(f) for f in enrichment.vulnerabilities],
            total_cves=enrichment.total_cves,
            critical_count=enrichment.critical_count,
            high_count=enrichment.high_count,
            kev_count=enrichment.kev_count,
            max_cvss=enrichment.max_cvss,
            max_epss=enrichment.max_epss,
            risk_level=enrichment.risk_level,
            enriched_at=enrichment.enriched_at,
        )


class VulnerabilitySummaryResponse(BaseModel):
    model_config = _CAMEL

    total_assets: int
    assets_with_vulnerabilities: int
    total_cves: int
    unique_cves: int
    critical_count: int
    high_count: int
    kev_count: int
    risk_levels: dict[str, int]
    highest_risk_assets: list[str]
    top_cves: list[str]

    @classmethod
    def from_summary(cls, summary: VulnerabilitySummary) -> "VulnerabilitySummaryResponse":
        return cls(
            total_assets=summary.total_assets,
            assets_with_vulnerabilities=summary.assets_with_vulnerabilities,
            total_cves=summary.total_cves,
            unique_cves=summary.unique_cves,
            critical_count=summary.critical_count,
            high_count=summary.high_count,
            kev_count=summary.kev_count,
            risk_levels=dict(summary.risk_levels),
            highest_risk_assets=list(summary.highest_risk_assets),
            top_cves=list(summary.top_cves),
        )


class BatchEnrichmentResponse(BaseModel):
    """Response body for POST /vulnerabilities.

    requestedCount is the number of assets kept after the per-request cap,
    not the number submitted.
    """

    model_config = _CAMEL

    enrichments: list[AssetEnrichmentResponse]
    summary: VulnerabilitySummaryResponse
    enriched_count: int
    requested_count: int


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses: {"error": "<message>"}."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
