"""
tests/conftest.py -- Shared test fixtures for the enrichment API tests.

This module provides:
  - _patch_lifespan(): wires a test KEV set into app.state, bypassing the
    real startup (which fetches the CISA feed over the network)
  - api_client: TestClient against the real app with rate limiting disabled
  - enrich_mock / summarize_mock: collaborator fakes installed through
    app.dependency_overrides so route tests never reach NVD
  - no_sleep: patches the batch pipeline's pause so tests run instantly
  - enrichment_factory: builds a core enrichment for a given asset id
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

# Set before any app import: get_settings() is cached on first call and
# TrustedHostMiddleware rejects TestClient's "testserver" Host otherwise.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from api.routes.v1.vulnerabilities import get_enricher, get_summarizer
from core.models import AssetVulnerabilityEnrichment, VulnerabilityFinding, VulnerabilitySummary

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_enrichment(asset_id: str, **overrides) -> AssetVulnerabilityEnrichment:
    """Build a one-finding enrichment for asset_id."""
    finding = VulnerabilityFinding(
        cve_id="CVE-2023-1234",
        description="Test controller flaw.",
        cvss_score=9.8,
        severity="CRITICAL",
        is_kev=True,
        epss_score=0.7,
        epss_percentile=0.99,
    )
    fields = dict(
        asset_id=asset_id,
        tag_number=f"TAG-{asset_id}",
        vendor="honeywell",
        model="c300",
        search_query="honeywell c300",
        vulnerabilities=[finding],
        total_cves=1,
        critical_count=1,
        high_count=0,
        kev_count=1,
        max_cvss=9.8,
        max_epss=0.7,
        risk_level="critical",
        enriched_at="2026-01-01T00:00:00+00:00",
    )
    fields.update(overrides)
    return AssetVulnerabilityEnrichment(**fields)


def _patch_lifespan(kev_set: set[str]):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.kev_set = kev_set
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real app with a stubbed lifespan.

    Rate limiting is switched off so module-scoped clients can make more than
    a handful of batch requests.
    """
    app.router.lifespan_context = _patch_lifespan({"CVE-2023-1234"})
    limiter.enabled = False
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    limiter.enabled = True


@pytest.fixture
def enrich_mock() -> Generator[MagicMock, None, None]:
    """Install a fake enricher that returns an enrichment keyed by the asset's id."""
    mock = MagicMock(side_effect=lambda asset: make_enrichment(asset.id))
    app.dependency_overrides[get_enricher] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_enricher, None)


@pytest.fixture
def summarize_mock() -> Generator[MagicMock, None, None]:
    """Install a fake summarizer reporting how many enrichments it was given."""
    mock = MagicMock(side_effect=lambda enrichments: VulnerabilitySummary(total_assets=len(enrichments)))
    app.dependency_overrides[get_summarizer] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_summarizer, None)


@pytest.fixture
def no_sleep() -> Generator[MagicMock, None, None]:
    """Replace the pipeline's pause with a mock so pacing is asserted, not waited for."""
    with patch("core.pipeline._pause") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def enrichment_factory():
    """Expose make_enrichment() to tests that need custom enrichments."""
    return make_enrichment
