"""Tests for the command line entry point."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from knowledge_bot.cli import build_parser, main, run_clear, run_query, run_update
from knowledge_bot.container import Services
from knowledge_bot.exceptions import DocumentError
from knowledge_bot.query.pipeline import NO_KNOWLEDGE_ANSWER


@pytest.fixture
def knowledge_file(tmp_path: Path) -> Path:
    path = tmp_path / "pricing.json"
    path.write_text(
        json.dumps(
            [
                {"title": "Pricing", "url": "", "content": "Plan X costs $10/mo"},
                {"title": "Draft", "url": "", "content": ""},
            ]
        )
    )
    return path


class TestParser:
    """Tests for argument parsing."""

    def test_query_options(self) -> None:
        args = build_parser().parse_args(
            ["query", "faq", "How much is Plan X?", "--top-k", "5", "--budget", "800"]
        )
        assert args.command == "query"
        assert args.collection == "faq"
        assert args.top_k == 5
        assert args.budget == 800

    def test_update_takes_path(self) -> None:
        args = build_parser().parse_args(["update", "faq", "data/pricing.json"])
        assert args.file == Path("data/pricing.json")

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Tests for the command implementations."""

    async def test_update_reports_each_document(
        self,
        services: Services,
        knowledge_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = await run_update(services, "faq", knowledge_file)

        out = capsys.readouterr().out
        assert code == 1
        assert "OK    Pricing" in out
        assert "FAIL  Draft: Invalid request" in out
        assert "1/2 documents ingested into faq" in out

    async def test_query_prints_sources(
        self,
        services: Services,
        knowledge_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await run_update(services, "faq", knowledge_file)
        capsys.readouterr()

        code = await run_query(services, "faq", "How much is Plan X?", top_k=3, budget=None)

        out = capsys.readouterr().out
        assert code == 0
        assert "Grounded answer" in out
        assert "[1] Pricing" in out

    async def test_clear_then_query_refuses(
        self,
        services: Services,
        knowledge_file: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await run_update(services, "faq", knowledge_file)

        await run_clear(services, "faq")
        await run_query(services, "faq", "How much is Plan X?", top_k=None, budget=None)

        out = capsys.readouterr().out
        assert "Cleared collection faq" in out
        assert NO_KNOWLEDGE_ANSWER in out


class TestMain:
    """Tests for main()."""

    def test_error_exits_with_user_message(self, capsys: pytest.CaptureFixture[str]) -> None:
        services = MagicMock()
        services.ingestion.ingest_file = AsyncMock(
            side_effect=DocumentError("File not found: missing.json")
        )
        services.close = AsyncMock()

        with (
            patch("knowledge_bot.cli.build_services", return_value=services),
            patch("knowledge_bot.cli.setup_logging"),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["update", "faq", "missing.json"])

        assert exc_info.value.code == 1
        assert "Invalid request: File not found" in capsys.readouterr().err
        services.close.assert_awaited_once()

    def test_serve_runs_uvicorn(self) -> None:
        with (
            patch("knowledge_bot.cli.uvicorn.run") as run,
            patch("knowledge_bot.cli.setup_logging"),
        ):
            main(["serve"])

        run.assert_called_once()
        assert run.call_args.args[0] == "knowledge_bot.api.app:app"
