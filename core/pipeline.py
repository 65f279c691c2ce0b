"""
core/pipeline.py — Sequential, paced batch enrichment.

No print statements. Designed to be called by both the CLI (via main.py) and
the REST API (via api/routes/v1/vulnerabilities.py). The enrichment and
summary collaborators are passed in, so this module never touches the network.

Items are processed strictly one at a time with a fixed pause after each
lookup. Running them in parallel would blow through the upstream NVD limit.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from time import sleep as _pause
from typing import Any, Optional

from core.models import AssetDescriptor, ControlSystemContext

logger = logging.getLogger("otvuln.pipeline")

DEFAULT_MAX_ASSETS = 20
DEFAULT_DELAY_SECONDS = 6.5

EnrichFn = Callable[[AssetDescriptor], Optional[Any]]
SummarizeFn = Callable[[dict[str, Any]], Any]


@dataclass
class BatchResult:
    enrichments: dict[str, Any]
    summary: Any
    requested_count: int

    @property
    def enriched_count(self) -> int:
        return len(self.enrichments)


def enrich_batch(
    assets: Sequence[AssetDescriptor],
    enrich: EnrichFn,
    summarize: SummarizeFn,
    max_assets: int = DEFAULT_MAX_ASSETS,
    delay_seconds: float = DEFAULT_DELAY_SECONDS,
    sleep: Optional[Callable[[float], None]] = None,
) -> BatchResult:
    """Enrich up to max_assets assets one by one and summarize the results.

    Assets beyond max_assets are dropped. Assets without an id are skipped
    without a lookup or a pause. Every lookup, including the last, is
    followed by a pause of delay_seconds. A falsy enrichment stores nothing.

    requested_count is the number of assets kept after truncation.
    Exceptions from either collaborator propagate; nothing partial is returned.
    """
    sleep = sleep or _pause
    to_enrich = list(assets[:max_assets])
    if len(assets) > max_assets:
        logger.warning("Batch of %d assets truncated to %d", len(assets), max_assets)

    enrichments: dict[str, Any] = {}
    for asset in to_enrich:
        if not asset.id:
            continue

        enrichment = enrich(asset)
        if enrichment:
            enrichments[asset.id] = enrichment

        sleep(delay_seconds)

    summary = summarize(enrichments)
    logger.info("Batch enriched %d of %d asset(s)", len(enrichments), len(to_enrich))
    return BatchResult(enrichments=enrichments, summary=summary, requested_count=len(to_enrich))


def lookup_asset(vendor: str, model: Optional[str], enrich: EnrichFn) -> Optional[Any]:
    """Enrich a placeholder asset built from a bare vendor/model pair."""
    query_asset = AssetDescriptor(
        id="query",
        tag_number="QUERY",
        control_system=ControlSystemContext(controller_make=vendor, controller_model=model or None),
    )
    return enrich(query_asset)
