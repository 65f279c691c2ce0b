"""Unit tests for main.py -- asset file loading and the two CLI modes.

Network calls are patched at main's import site; the batch pause is set to 0
through --delay.
"""

import json
import sys
from unittest.mock import patch

from core.models import AssetVulnerabilityEnrichment
from main import _load_assets, main


def _enrichment(asset_id):
    return AssetVulnerabilityEnrichment(
        asset_id=asset_id,
        tag_number=None,
        vendor="honeywell",
        model="c300",
        search_query="honeywell c300",
    )


class TestLoadAssets:
    def test_wrapped_assets(self, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps({"assets": [{"id": "a1", "controlSystem": {"controllerMake": "abb"}}]}))
        (asset,) = _load_assets(str(path))
        assert asset.id == "a1"
        assert asset.control_system.controller_make == "abb"

    def test_bare_list(self, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps([{"id": 7}, "junk"]))
        assets = _load_assets(str(path))
        assert [a.id for a in assets] == ["7"]

    def test_missing_file(self, tmp_path, capsys):
        assert _load_assets(str(tmp_path / "nope.json")) == []
        assert "not a readable file" in capsys.readouterr().out

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "assets.json"
        path.write_text("{broken")
        assert _load_assets(str(path)) == []
        assert "Could not read assets" in capsys.readouterr().out

    def test_boolean_id_rejected_like_the_api(self, tmp_path, capsys):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps([{"id": True}]))
        assert _load_assets(str(path)) == []
        assert "Could not read assets" in capsys.readouterr().out

    def test_manufacturer_fallback_fields(self, tmp_path):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps([{"id": "a1", "controlSystem": {"manufacturer": "abb", "model": "ac800m"}}]))
        (asset,) = _load_assets(str(path))
        assert asset.control_system.vendor == "abb"
        assert asset.control_system.product == "ac800m"


class TestMain:
    def test_single_lookup_json(self, capsys, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["otvuln", "--vendor", "honeywell", "--model", "c300", "--json"])
        with (
            patch("main.fetch_kev", return_value=set()),
            patch("main.enrich_asset_vulnerabilities", return_value=_enrichment("query")) as mock_enrich,
        ):
            main()
        out = json.loads(capsys.readouterr().out)
        assert out["assetId"] == "query"
        assert out["searchQuery"] == "honeywell c300"
        asset = mock_enrich.call_args.args[0]
        assert asset.control_system.controller_model == "c300"

    def test_single_lookup_not_found(self, capsys, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["otvuln", "--vendor", "nobody", "--no-color"])
        with patch("main.fetch_kev", return_value=set()), patch("main.enrich_asset_vulnerabilities", return_value=None):
            main()
        assert "Could not find vulnerability data" in capsys.readouterr().out

    def test_batch_json(self, tmp_path, capsys, monkeypatch):
        path = tmp_path / "assets.json"
        path.write_text(json.dumps({"assets": [{"id": "a1"}, {"tagNumber": "no-id"}, {"id": "a2"}]}))
        monkeypatch.setattr(sys, "argv", ["otvuln", "--file", str(path), "--delay", "0", "--json"])
        with (
            patch("main.fetch_kev", return_value=set()),
            patch("main.enrich_asset_vulnerabilities", side_effect=lambda asset, kev_set: _enrichment(asset.id)),
        ):
            main()
        out = json.loads(capsys.readouterr().out)
        assert out["enrichedCount"] == 2
        assert out["requestedCount"] == 3
        assert out["summary"]["totalAssets"] == 2
        assert out["summary"]["assetsWithVulnerabilities"] == 0
        assert [e["assetId"] for e in out["enrichments"]] == ["a1", "a2"]
        assert "asset_id" not in out["enrichments"][0]

    def test_no_arguments_prints_help(self, capsys, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["otvuln"])
        main()
        assert "usage:" in capsys.readouterr().out
