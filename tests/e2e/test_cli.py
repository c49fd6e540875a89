# ABOUTME: End-to-end tests for the bibrecon CLI.
# ABOUTME: Drives reconcile, preview, config, and search through Click's CliRunner.

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from bibrecon.cli import cli
from bibrecon.cli.commands import search_cmd
from bibrecon.metadata.http import ReconHttpClient
from bibrecon.metadata.provider import AdapterProvider, MetadataProvider, StaticProvider
from bibrecon.metadata.types import MetadataRecord, Query

DUNE = MetadataRecord(
    id="static-dune",
    source="static",
    confidence=0.9,
    title="Dune",
    authors=("Frank Herbert",),
    isbn=("9780441013593",),
    publication_date="1965",
)


class TestCliBasics:
    """E2e tests for the root command."""

    def test_version(self) -> None:
        """--version prints the installed version."""
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "version" in result.output

    def test_help_lists_commands(self) -> None:
        """--help lists every subcommand."""
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("reconcile", "preview", "config", "search"):
            assert command in result.output


class TestCliReconcile:
    """E2e tests for `bibrecon reconcile`."""

    def test_table_output(self, records_file: Path) -> None:
        """Reconcile prints a table and the overall confidence."""
        result = CliRunner().invoke(cli, ["reconcile", str(records_file)])
        assert result.exit_code == 0
        assert "Reconciled metadata from 2 record(s)" in result.output
        assert "Overall confidence" in result.output

    def test_json_output(self, records_file: Path) -> None:
        """--json prints the whole reconciliation as JSON."""
        result = CliRunner().invoke(cli, ["reconcile", str(records_file), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        isbns = [i["normalized"] for i in data["identifiers"]["value"] if i["type"] == "isbn"]
        assert isbns == ["9780441013593"]
        assert data["stats"]["total_sources"] == 2
        assert data["physical"]["page_count"]["value"] == 412

    def test_skip_dimension(self, records_file: Path) -> None:
        """--skip leaves a dimension as a placeholder."""
        result = CliRunner().invoke(cli, ["reconcile", str(records_file), "--skip", "subjects", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["subjects"]["confidence"] == 0.0

    def test_low_confidence_flagged(self, records_file: Path) -> None:
        """Fields under --min-confidence are counted."""
        result = CliRunner().invoke(cli, ["reconcile", str(records_file), "--min-confidence", "0.99"])
        assert result.exit_code == 0
        assert "below confidence 0.99" in result.output

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty record list is reported without failing."""
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        result = CliRunner().invoke(cli, ["reconcile", str(path)])
        assert result.exit_code == 0
        assert "No records to reconcile" in result.output

    def test_invalid_file(self, tmp_path: Path) -> None:
        """Unreadable JSON exits with status 1."""
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        result = CliRunner().invoke(cli, ["reconcile", str(path)])
        assert result.exit_code == 1
        assert "Cannot read" in result.output

    def test_missing_file(self) -> None:
        """A nonexistent path is a usage error."""
        result = CliRunner().invoke(cli, ["reconcile", "/nonexistent/records.json"])
        assert result.exit_code != 0


class TestCliPreview:
    """E2e tests for `bibrecon preview`."""

    def test_preview_with_library(self, records_file: Path, library_file: Path) -> None:
        """A copy already in the library shows up as a duplicate."""
        result = CliRunner().invoke(cli, ["preview", str(records_file), "--library", str(library_file)])
        assert result.exit_code == 0
        assert "Possible duplicates" in result.output
        assert "owned-dune" in result.output
        assert "exact duplicate" in result.output

    def test_preview_conflict_report(self, records_file: Path) -> None:
        """--conflicts appends the conflict report."""
        result = CliRunner().invoke(cli, ["preview", str(records_file), "--conflicts"])
        assert result.exit_code == 0
        assert "Conflict Report" in result.output

    def test_preview_json(self, records_file: Path, library_file: Path) -> None:
        """--json prints the preview as JSON."""
        result = CliRunner().invoke(
            cli, ["preview", str(records_file), "--library", str(library_file), "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["entry"]["title"] == "Dune"
        assert data["duplicates"][0]["existing_entry"]["id"] == "owned-dune"

    def test_preview_requires_records(self, tmp_path: Path) -> None:
        """Previewing nothing exits with status 1."""
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        result = CliRunner().invoke(cli, ["preview", str(path)])
        assert result.exit_code == 1


class TestCliConfig:
    """E2e tests for `bibrecon config`."""

    def test_validate_valid(self, config_file: Path) -> None:
        """A valid config passes."""
        result = CliRunner().invoke(cli, ["config", "validate", str(config_file)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_validate_invalid(self, tmp_path: Path) -> None:
        """Every problem is listed and the exit status is 1."""
        path = tmp_path / "bad-config.json"
        path.write_text(
            json.dumps({"max_concurrent_queries": 0, "providers": {"openlibrary": {"priority": -1}}}),
            encoding="utf-8",
        )
        result = CliRunner().invoke(cli, ["config", "validate", str(path)])
        assert result.exit_code == 1
        assert "2 error(s)" in result.output
        assert "max_concurrent_queries must be greater than 0" in result.output

    def test_validate_malformed(self, tmp_path: Path) -> None:
        """Malformed JSON exits with status 1."""
        path = tmp_path / "bad-config.json"
        path.write_text("[]", encoding="utf-8")
        result = CliRunner().invoke(cli, ["config", "validate", str(path)])
        assert result.exit_code == 1

    def test_show_merges_file(self, config_file: Path) -> None:
        """show prints the defaults merged with the file."""
        result = CliRunner().invoke(cli, ["config", "show", str(config_file)])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["providers"]["openlibrary"]["priority"] == 90
        assert data["providers"]["openlibrary"]["rate_limit"]["max_requests"] == 10


class TestCliSearch:
    """E2e tests for `bibrecon search` with providers swapped for offline ones."""

    def test_requires_criteria(self) -> None:
        """Searching with no criteria exits with status 1."""
        result = CliRunner().invoke(cli, ["search"])
        assert result.exit_code == 1
        assert "Give at least one" in result.output

    def test_isbn_search(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ISBN searches go through the coordinator to the providers."""

        def providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
            return [StaticProvider("static", [DUNE])]

        monkeypatch.setattr(search_cmd, "_create_providers", providers)
        result = CliRunner().invoke(cli, ["search", "--isbn", "978-0-441-01359-3"])
        assert result.exit_code == 0
        assert "Dune" in result.output
        assert "1 result(s)" in result.output

    def test_json_search(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """--json prints the aggregated result."""

        def providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
            return [StaticProvider("static", [DUNE])]

        monkeypatch.setattr(search_cmd, "_create_providers", providers)
        result = CliRunner().invoke(cli, ["search", "--title", "Dune", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["aggregated_records"][0]["title"] == "Dune"

    def test_failed_provider_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failing provider is reported and the search finds nothing."""

        async def broken(query: Query) -> list[MetadataRecord]:
            msg = "service unavailable"
            raise RuntimeError(msg)

        def providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
            return [AdapterProvider("broken", broken)]

        monkeypatch.setattr(search_cmd, "_create_providers", providers)
        result = CliRunner().invoke(cli, ["search", "--author", "Frank Herbert"])
        assert result.exit_code == 0
        assert "broken failed" in result.output
        assert "No results found" in result.output

    def test_max_providers_limits_selection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """--max-providers keeps only the highest-priority providers."""
        backup = MetadataRecord(id="backup-dune", source="backup", confidence=0.8, title="Dune")

        def providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
            return [
                StaticProvider("backup", [backup], priority=10),
                StaticProvider("static", [DUNE], priority=90),
            ]

        monkeypatch.setattr(search_cmd, "_create_providers", providers)
        result = CliRunner().invoke(
            cli, ["search", "--title", "Dune", "--max-providers", "1", "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [o["provider"] for o in data["provider_results"]] == ["static"]

    def test_relaxed_fallback_finds_title(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A wrong author is dropped by the relaxed title-only fallback."""

        def providers(http_client: ReconHttpClient) -> list[MetadataProvider]:
            return [StaticProvider("static", [DUNE])]

        monkeypatch.setattr(search_cmd, "_create_providers", providers)
        result = CliRunner().invoke(
            cli, ["search", "--title", "Dune", "--author", "Someone Else", "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["aggregated_records"][0]["id"] == "static-dune"
        assert len(data["provider_results"]) == 2
        assert data["successful_providers"] == 1
