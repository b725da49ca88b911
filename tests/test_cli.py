"""Tests for the click command line interface."""

import json

import httpx
import pytest
from click.testing import CliRunner

from catalog_autoconfig.cli import main
from catalog_autoconfig.storage.provider_store import ProviderStore


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTOCONFIG_STORE_DIR", str(tmp_path / "store"))
    monkeypatch.delenv("AUTOCONFIG_TIMEOUT", raising=False)
    monkeypatch.delenv("AUTOCONFIG_LOG_LEVEL", raising=False)
    return CliRunner()


@pytest.fixture
def store(tmp_path):
    return ProviderStore(tmp_path / "store")


@pytest.fixture
def manga_profile_file(tmp_path, rest_manga_profile):
    path = tmp_path / "manga.json"
    path.write_text(rest_manga_profile.model_dump_json(), encoding="utf-8")
    return path


def use_handler(monkeypatch, client_for, handler):
    monkeypatch.setattr(main, "create_http_client", lambda settings: client_for(handler))


class TestCli:
    def test_help(self, runner):
        result = runner.invoke(main.cli, ["--help"])

        assert result.exit_code == 0
        for command in ("analyze", "introspect", "autoconfig", "validate", "providers"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main.cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_invalid_timeout_env(self, runner, monkeypatch):
        monkeypatch.setenv("AUTOCONFIG_TIMEOUT", "soon")

        result = runner.invoke(main.cli, ["providers", "list"])

        assert result.exit_code != 0
        assert "Configuration Error" in result.output


class TestAnalyzeCommand:
    def test_json_output(self, runner, manga_profile_file):
        result = runner.invoke(main.cli, ["analyze", str(manga_profile_file), "--json"])

        assert result.exit_code == 0
        analysis = json.loads(result.output[result.output.index("{"):])
        assert analysis["fingerprint"]["architecture"] == "REST-Traditional"
        assert any(p["value"] == "Manga" for p in analysis["patterns"])

    def test_table_output(self, runner, manga_profile_file):
        result = runner.invoke(main.cli, ["analyze", str(manga_profile_file)])

        assert result.exit_code == 0
        assert "Detected patterns" in result.output

    def test_inspect_responses_flag(self, runner, monkeypatch, client_for, manga_profile_file):
        use_handler(monkeypatch, client_for, lambda request: httpx.Response(200, json={"data": {"mangas": {"edges": []}}}))

        result = runner.invoke(main.cli, ["analyze", str(manga_profile_file), "--inspect-responses", "--json"])

        assert result.exit_code == 0, result.output
        analysis = json.loads(result.output[result.output.index("{"):])
        assert {"type": "pagination_style", "value": "Relay-Connection"} in [
            {"type": p["type"], "value": p["value"]} for p in analysis["patterns"]
        ]

    def test_invalid_profile_aborts(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"site_type": "spa"}), encoding="utf-8")

        result = runner.invoke(main.cli, ["analyze", str(path)])

        assert result.exit_code == 1
        assert "Invalid site profile" in result.output


class TestIntrospectCommand:
    def test_rejects_relative_endpoint_without_profile(self, runner):
        result = runner.invoke(main.cli, ["introspect", "/graphql"])

        assert result.exit_code == 1
        assert "Invalid URL format" in result.output

    def test_prints_queries(self, runner, monkeypatch, client_for, introspection_payload):
        use_handler(monkeypatch, client_for, lambda request: httpx.Response(200, json=introspection_payload))

        result = runner.invoke(main.cli, ["introspect", "https://anime.example/api/graphql"])

        assert result.exit_code == 0, result.output
        assert "searchShows" in result.output
        assert "query SearchSearchShows" in result.output

    def test_unsupported_endpoint_aborts(self, runner, monkeypatch, client_for):
        use_handler(monkeypatch, client_for, lambda request: httpx.Response(404))

        result = runner.invoke(main.cli, ["introspect", "https://anime.example/graphql"])

        assert result.exit_code == 1
        assert "Introspection unsupported" in result.output


class TestAutoconfigCommand:
    def test_dry_run_prints_config(self, runner, manga_profile_file, store):
        result = runner.invoke(
            main.cli, ["autoconfig", str(manga_profile_file), "--skip-validation", "--dry-run"]
        )

        assert result.exit_code == 0, result.output
        assert '"slug": "mangaworld"' in result.output
        assert store.get("mangaworld") is None

    def test_saves_to_store_dir(self, runner, manga_profile_file, tmp_path):
        store_dir = tmp_path / "elsewhere"

        result = runner.invoke(
            main.cli,
            [
                "autoconfig",
                str(manga_profile_file),
                "--skip-validation",
                "--name",
                "Manga Mirror",
                "--store-dir",
                str(store_dir),
            ],
        )

        assert result.exit_code == 0, result.output
        assert ProviderStore(store_dir).get("manga-mirror") is not None

    def test_failed_validation_exits_nonzero(self, runner, monkeypatch, client_for, manga_profile_file):
        use_handler(monkeypatch, client_for, lambda request: httpx.Response(503))

        result = runner.invoke(main.cli, ["autoconfig", str(manga_profile_file), "--dry-run"])

        assert result.exit_code == 1
        assert "Validation failed: Connectivity" in result.output


class TestValidateCommand:
    def test_not_found(self, runner):
        result = runner.invoke(main.cli, ["validate", "ghost"])

        assert result.exit_code == 1
        assert "Provider not found" in result.output

    def test_revalidates_and_saves(self, runner, monkeypatch, client_for, store, graphql_config):
        store.save(graphql_config)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "HEAD":
                return httpx.Response(200)
            variables = json.loads(request.content)["variables"]
            if "search" in variables:
                return httpx.Response(200, json={"data": {"shows": {"edges": [{"_id": "abc", "name": "Naruto"}]}}})
            if "ep" in variables:
                return httpx.Response(200, json={"data": {"sources": [{"url": "https://v.example/1.m3u8"}]}})
            return httpx.Response(200, json={"data": {"show": {"episodes": [{"n": "1"}]}}})

        use_handler(monkeypatch, client_for, handler)

        result = runner.invoke(main.cli, ["validate", "animesite", "--test-query", "Naruto"])

        assert result.exit_code == 0, result.output
        assert "Validation passed" in result.output
        assert store.get("animesite").last_validated_at is not None


class TestProvidersCommands:
    def test_list_empty(self, runner):
        result = runner.invoke(main.cli, ["providers", "list"])

        assert result.exit_code == 0
        assert "No providers configured" in result.output

    def test_list_show_remove(self, runner, store, graphql_config, rest_manga_config):
        store.save(graphql_config)
        store.save(rest_manga_config)

        listed = runner.invoke(main.cli, ["providers", "list"])
        assert listed.exit_code == 0
        assert "animesite" in listed.output
        assert "mangaworld" in listed.output

        shown = runner.invoke(main.cli, ["providers", "show", "animesite"])
        assert shown.exit_code == 0
        assert json.loads(shown.output)["slug"] == "animesite"

        removed = runner.invoke(main.cli, ["providers", "remove", "animesite"])
        assert removed.exit_code == 0
        assert "Removed provider animesite" in removed.output
        assert store.get("animesite") is None

    def test_remove_missing(self, runner):
        result = runner.invoke(main.cli, ["providers", "remove", "ghost"])

        assert result.exit_code == 1
        assert "Provider not found" in result.output

    def test_unsafe_slug(self, runner):
        result = runner.invoke(main.cli, ["providers", "show", "../etc"])

        assert result.exit_code == 1
        assert "Path traversal" in result.output
