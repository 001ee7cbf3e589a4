"""Tests for build manifest lookup."""

import json

from phpstan_hub.manifest import BuildManifest


class TestBuildManifest:
    def test_script_and_styles(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(
            json.dumps(
                {
                    "assets/js/app.js": {
                        "file": "assets/app-123.js",
                        "css": ["assets/app-456.css", "assets/extra.css"],
                    }
                }
            )
        )
        manifest = BuildManifest(path)
        assert manifest.script_tags() == '<script type="module" src="/build/assets/app-123.js"></script>'
        assert manifest.style_tags() == (
            '<link rel="stylesheet" href="/build/assets/app-456.css">'
            '<link rel="stylesheet" href="/build/assets/extra.css">'
        )

    def test_missing_manifest(self, tmp_path):
        manifest = BuildManifest(tmp_path / "missing.json")
        assert manifest.script_tags() == ""
        assert manifest.style_tags() == ""

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text("{oops")
        assert BuildManifest(path).script_urls() == []

    def test_entry_without_css(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps({"assets/js/app.js": {"file": "app.js"}}))
        manifest = BuildManifest(path)
        assert manifest.script_urls() == ["/build/app.js"]
        assert manifest.style_urls() == []
