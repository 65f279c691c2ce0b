"""
api/routes/v1/vulnerabilities.py -- Vulnerability enrichment route handlers.

  POST /vulnerabilities  -- paced batch enrichment of up to 20 assets
  GET  /vulnerabilities  -- single vendor/model lookup

The enrichment and summary collaborators are injected with Depends() so the
app can swap them (tests override them through app.dependency_overrides).
The default enricher is bound to the KEV set loaded at startup.

Rate limits are applied via slowapi. The @limiter.limit() decorator sits
ABOVE @router.get/post; SlowAPIMiddleware looks the limits up by endpoint
name, so the registered function itself needs no wrapping.
"""

import logging
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from api.limiter import batch_limit, limiter, lookup_limit
from api.models import (
    AssetEnrichmentResponse,
    BatchEnrichmentResponse,
    ErrorResponse,
    VulnerabilityBatchRequest,
    VulnerabilitySummaryResponse,
)
from core.config import get_settings
from core.enricher import enrich_asset_vulnerabilities, summarize_vulnerabilities
from core.pipeline import EnrichFn, SummarizeFn, enrich_batch, lookup_asset

logger = logging.getLogger("otvuln.api.vulnerabilities")

router = APIRouter()

NO_ASSETS = "No assets provided"
ENRICH_FAILED = "Failed to enrich vulnerabilities"
VENDOR_REQUIRED = "Vendor parameter required"
LOOKUP_NOT_FOUND = "Could not find vulnerability data for this vendor/model"


# ---------------------------------------------------------------------------
# Collaborator dependencies
# ---------------------------------------------------------------------------


def get_enricher(request: Request) -> EnrichFn:
    """Return the per-asset enrichment function bound to the startup KEV set."""
    kev_set = getattr(request.app.state, "kev_set", set())
    return partial(enrich_asset_vulnerabilities, kev_set=kev_set)


def get_summarizer() -> SummarizeFn:
    return summarize_vulnerabilities


# ---------------------------------------------------------------------------
# Route 1: POST /vulnerabilities
# ---------------------------------------------------------------------------


@limiter.limit(batch_limit)
@router.post(
    "/vulnerabilities",
    response_model=BatchEnrichmentResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def post_vulnerabilities(
    request: Request,
    enrich: EnrichFn = Depends(get_enricher),
    summarize: SummarizeFn = Depends(get_summarizer),
) -> BatchEnrichmentResponse:
    """Enrich a batch of assets with NVD, CISA KEV and EPSS data.

    Body: {"assets": [<partial asset>, ...]}

    The body is parsed here rather than by a typed parameter so that a
    malformed body falls into the same generic 500 as any other failure
    instead of a 422. Only the first MAX_ASSETS_PER_REQUEST assets are
    processed, one at a time, with ENRICHMENT_DELAY_MS between lookups. The
    loop blocks, so it runs in the threadpool.
    """
    settings = get_settings()
    try:
        payload = await request.json()
        if payload is None:
            raise TypeError("Request body is JSON null")
        # Numbers, strings and arrays carry no "assets" key: 400 below.
        body = VulnerabilityBatchRequest.model_validate(payload if isinstance(payload, dict) else {})
        if not body.assets:
            raise HTTPException(status_code=400, detail=NO_ASSETS)

        result = await run_in_threadpool(
            enrich_batch,
            [asset.to_domain() for asset in body.assets],
            enrich,
            summarize,
            max_assets=settings.max_assets_per_request,
            delay_seconds=settings.enrichment_delay_seconds,
        )

        return BatchEnrichmentResponse(
            enrichments=[AssetEnrichmentResponse.from_enriched(e) for e in result.enrichments.values()],
            summary=VulnerabilitySummaryResponse.from_summary(result.summary),
            enriched_count=result.enriched_count,
            requested_count=result.requested_count,
        )
    except HTTPException:
        raise
    except Exception as exc:
        # Results gathered before the failure are discarded on purpose.
        logger.exception("Vulnerability enrichment error")
        raise HTTPException(status_code=500, detail=ENRICH_FAILED) from exc


# ---------------------------------------------------------------------------
# Route 2: GET /vulnerabilities?vendor=...&model=...
# ---------------------------------------------------------------------------


@limiter.limit(lookup_limit)
@router.get(
    "/vulnerabilities",
    response_model=AssetEnrichmentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_vulnerabilities(
    request: Request,
    vendor: Optional[str] = Query(default=None),
    model: Optional[str] = Query(default=None),
    enrich: EnrichFn = Depends(get_enricher),
) -> AssetEnrichmentResponse:
    """Look up vulnerabilities for a single controller vendor/model.

    Query params:
        vendor -- controller manufacturer, e.g. honeywell (required)
        model  -- controller model, e.g. c300 (optional)

    Returns the enrichment object itself, not wrapped in a batch envelope.
    """
    if not vendor:
        raise HTTPException(status_code=400, detail=VENDOR_REQUIRED)

    enrichment = lookup_asset(vendor, model, enrich)
    if not enrichment:
        raise HTTPException(status_code=404, detail=LOOKUP_NOT_FOUND)

    return AssetEnrichmentResponse.from_enriched(enrichment)
