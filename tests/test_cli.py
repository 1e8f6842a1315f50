"""
tests/test_cli.py -- End-to-end tests for main.py resource commands.

Each test points RESOURCE_DB_URL at a temporary SQLite file and clears the
get_settings() cache so main() picks it up. Output is captured with capsys;
color is off because captured stdout is not a TTY.
"""

from __future__ import annotations

import json

import pytest

from core.config import get_settings
from main import main

_DOCS = [
    {
        "title": "Post-9/11 GI Bill",
        "category": "education",
        "subcategory": "federal",
        "description": "Tuition and housing for eligible veterans.",
        "url": "https://www.va.gov/education/about-gi-bill-benefits/post-9-11/",
        "tags": ["gi-bill", "tuition"],
        "featured": True,
    },
    {
        "title": "State Tuition Waiver",
        "category": "education",
        "subcategory": "state",
        "description": "In-state tuition for veterans.",
        "url": "https://example.org/waiver",
        "tags": ["tuition"],
    },
    {"title": "Broken", "category": "housing"},
]


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("RESOURCE_DB_URL", f"sqlite:///{tmp_path / 'resources.db'}")
    monkeypatch.setenv("SESSION_DB_URL", f"sqlite:///{tmp_path / 'session.db'}")
    monkeypatch.setenv("NO_COLOR", "1")
    get_settings.cache_clear()
    seed = tmp_path / "resources.json"
    seed.write_text(json.dumps(_DOCS), encoding="utf-8")
    yield seed
    get_settings.cache_clear()


class TestResourceCommands:
    def test_import_then_list_json(self, cli_env, capsys):
        assert main(["import", str(cli_env)]) == 0
        assert "Imported 2 resource(s)." in capsys.readouterr().out

        assert main(["list", "--category", "education", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [d["title"] for d in data] == ["Post-9/11 GI Bill", "State Tuition Waiver"]
        assert data[0]["category"] == "education"

    def test_search_and_related(self, cli_env, capsys):
        main(["import", str(cli_env)])
        capsys.readouterr()

        assert main(["search", "in-state", "--json"]) == 0
        (waiver,) = json.loads(capsys.readouterr().out)

        assert main(["related", waiver["id"], "--json"]) == 0
        related = json.loads(capsys.readouterr().out)
        assert [r["title"] for r in related] == ["Post-9/11 GI Bill"]

    def test_show_renders_terminal_view(self, cli_env, capsys):
        main(["import", str(cli_env)])
        capsys.readouterr()
        main(["featured", "--json"])
        (featured,) = json.loads(capsys.readouterr().out)

        assert main(["show", featured["id"]]) == 0
        out = capsys.readouterr().out
        assert "Post-9/11 GI Bill" in out
        assert "RELATED" in out

    def test_show_invalid_id_exits_nonzero(self, cli_env, capsys):
        assert main(["show", "not-a-valid-key"]) == 1
        assert "not a valid resource identifier" in capsys.readouterr().out

    def test_missing_import_file(self, cli_env, tmp_path, capsys):
        assert main(["import", str(tmp_path / "missing.json")]) == 1

    @pytest.mark.parametrize("content", ["{not json", '{"title": "not an array"}'])
    def test_malformed_import_file_exits_nonzero(self, cli_env, tmp_path, capsys, content):
        bad = tmp_path / "bad.json"
        bad.write_text(content, encoding="utf-8")
        assert main(["import", str(bad)]) == 1
        assert "[!] Could not import" in capsys.readouterr().out

    def test_import_skips_bad_timestamp_and_keeps_going(self, cli_env, tmp_path, capsys):
        seed = tmp_path / "mixed.json"
        seed.write_text(json.dumps([dict(_DOCS[1], dateAdded=1700000000000), _DOCS[0]]), encoding="utf-8")
        assert main(["import", str(seed)]) == 0
        assert "Imported 1 resource(s)." in capsys.readouterr().out
        main(["list", "--json"])
        assert [d["title"] for d in json.loads(capsys.readouterr().out)] == ["Post-9/11 GI Bill"]

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestSessionCommands:
    def test_whoami_without_identity_key_reports_error(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("IDENTITY_API_KEY", "")
        get_settings.cache_clear()
        assert main(["whoami"]) == 1
        assert "IDENTITY_API_KEY" in capsys.readouterr().out

    def test_whoami_signed_out(self, cli_env, monkeypatch, capsys):
        monkeypatch.setenv("IDENTITY_API_KEY", "test-api-key")
        get_settings.cache_clear()
        assert main(["whoami"]) == 0
        assert "Not signed in." in capsys.readouterr().out

    def test_unreachable_session_store_reports_error(self, cli_env, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("IDENTITY_API_KEY", "test-api-key")
        monkeypatch.setenv("SESSION_DB_URL", f"sqlite:///{tmp_path / 'no-such-dir' / 'session.db'}")
        get_settings.cache_clear()
        assert main(["whoami"]) == 1
        assert "Session store unavailable" in capsys.readouterr().out
