#!/usr/bin/env python3
"""
otvuln — Vulnerability enrichment for OT controllers.
Correlates controller vendor/model with NVD, CISA KEV and EPSS.

Usage:
  python main.py --vendor honeywell --model c300
  python main.py --vendor siemens --json
  python main.py --file assets.json
  python main.py --file assets.json --delay 0 --no-color

The assets file holds {"assets": [...]} or a bare list of asset records
(id, tagNumber, controlSystem: {controllerMake, controllerModel}).

Environment variables:
  NVD_API_KEY   Optional NVD API key. Raises rate limit from 5 req/30s to 50 req/30s.
                Free registration at https://nvd.nist.gov/developers/request-an-api-key
"""

import argparse
import json
from functools import partial
from pathlib import Path

from pydantic import ValidationError

from api.models import VulnerabilityBatchRequest
from core.config import get_settings
from core.enricher import enrich_asset_vulnerabilities, summarize_vulnerabilities
from core.fetcher import fetch_kev
from core.formatter import batch_to_json, disable_color, print_enrichment, print_summary, to_json
from core.models import AssetDescriptor
from core.pipeline import enrich_batch, lookup_asset


def _load_assets(path: str) -> list[AssetDescriptor]:
    """Read asset records from a JSON file.

    Resolves symlinks and verifies the path is a regular file before reading.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{path}' is not a readable file.")
        return []
    try:
        data = json.loads(file_path.read_text())
    except (OSError, ValueError) as e:
        print(f"  [!] Could not read assets from '{path}': {e}")
        return []
    records = (data.get("assets") or []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        print(f"  [!] '{path}' does not contain a list of assets.")
        return []
    # Same request model as POST /vulnerabilities, so ids and camelCase keys
    # are read identically by both front ends.
    try:
        batch = VulnerabilityBatchRequest.model_validate({"assets": [r for r in records if isinstance(r, dict)]})
    except ValidationError as e:
        print(f"  [!] Could not read assets from '{path}': {e.error_count()} invalid field(s).")
        return []
    return [asset.to_domain() for asset in batch.assets]


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="otvuln",
        description="Vulnerability enrichment for OT controllers (NVD, CISA KEV, EPSS).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --vendor honeywell --model c300
  python main.py --file assets.json
  python main.py --file assets.json --json > report.json
  NVD_API_KEY=your-key python main.py --file assets.json --delay 1
        """,
    )
    parser.add_argument("--vendor", help="Controller vendor for a single lookup, e.g. honeywell")
    parser.add_argument("--model", help="Controller model for a single lookup, e.g. c300")
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="JSON file with asset records to enrich as a batch",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.enrichment_delay_seconds,
        metavar="SECONDS",
        help=f"Pause after each batch lookup (default: {settings.enrichment_delay_seconds:g})",
    )
    parser.add_argument("--json", action="store_true", help="Output structured JSON")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI color codes in terminal output")
    args = parser.parse_args()

    if args.no_color:
        disable_color()

    if not args.vendor and not args.file:
        parser.print_help()
        return

    if not args.json:
        print("\nOT Vulnerability Enrichment")
        print("─" * 40)
        if settings.nvd_api_key:
            print("NVD API key loaded (50 req/30s).")
        print("Loading CISA Known Exploited Vulnerabilities feed...", end=" ", flush=True)
    kev_set = fetch_kev()
    if not args.json:
        print(f"{len(kev_set)} entries loaded.\n")

    enrich = partial(enrich_asset_vulnerabilities, kev_set=kev_set)

    if args.vendor:
        enrichment = lookup_asset(args.vendor, args.model, enrich)
        if enrichment is None:
            print("  [!] Could not find vulnerability data for this vendor/model.")
            return
        if args.json:
            print(to_json(enrichment))
        else:
            print_enrichment(enrichment)
        return

    assets = _load_assets(args.file)
    if not assets:
        print("  [!] No assets provided.")
        return

    if not args.json:
        batch = min(len(assets), settings.max_assets_per_request)
        print(f"  Enriching {batch} asset(s), {args.delay:g}s between lookups...\n")

    result = enrich_batch(
        assets,
        enrich,
        summarize_vulnerabilities,
        max_assets=settings.max_assets_per_request,
        delay_seconds=args.delay,
    )

    if args.json:
        print(batch_to_json(result))
        return

    for enrichment in result.enrichments.values():
        print_enrichment(enrichment)
    print_summary(result.summary, result.requested_count)

    if len(assets) > result.requested_count:
        dropped = len(assets) - result.requested_count
        print(f"\n  [!] {dropped} asset(s) beyond the per-run cap of {settings.max_assets_per_request} were skipped.\n")


if __name__ == "__main__":
    main()
