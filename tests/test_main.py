"""
Tests for the command-line entry point.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-CLI-N-01 | import succeeds | Equivalence – normal | Candidate JSON, exit 0 | import |
| TC-CLI-N-02 | import --draft | Equivalence – normal | TeaDraft JSON with website | Draft |
| TC-CLI-A-01 | import rejected | Abnormal – guard | Error JSON, exit 1 | import |
| TC-CLI-A-02 | import without --url | Abnormal – usage | exit 2 | Usage |
| TC-CLI-N-03 | serve --port | Equivalence – normal | uvicorn.run with port | serve |
"""

import json
import sys
from unittest.mock import AsyncMock, patch

import pytest

pytestmark = pytest.mark.unit

from src import main as cli
from src.importer.errors import PrivateAddressRejectedError
from src.importer.schemas import ExtractionCandidate, TeaType

URL = "https://www.teashop.example/products/sencha"


@pytest.fixture
def candidate() -> ExtractionCandidate:
    return ExtractionCandidate(
        name="Sencha Kabusecha",
        image_url="https://cdn.teashop.example/sencha.jpg",
        type=TeaType.GREEN,
        steep_times=[60, 20, 30],
    )


class TestRunImport:
    """run_import() output and exit codes."""

    @pytest.mark.asyncio
    async def test_success(self, candidate, capsys):
        """Prints the candidate and returns 0 (TC-CLI-N-01)."""
        with (
            patch("src.main.import_tea", AsyncMock(return_value=candidate)),
            patch("src.main.close_browser_session", AsyncMock()) as mock_close,
        ):
            code = await cli.run_import(URL)

        assert code == 0
        assert json.loads(capsys.readouterr().out) == candidate.to_dict()
        mock_close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_draft(self, candidate, capsys):
        """--draft prints the pre-filled form (TC-CLI-N-02)."""
        with (
            patch("src.main.import_tea", AsyncMock(return_value=candidate)),
            patch("src.main.close_browser_session", AsyncMock()),
        ):
            code = await cli.run_import(URL, draft=True)

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["website"] == URL
        assert output["type"] == "Green"
        assert output["caffeineLevel"] == "Low"
        assert output["steepTimes"] == [60, 20, 30]

    @pytest.mark.asyncio
    async def test_rejected(self, capsys):
        """Errors print their body and return 1 (TC-CLI-A-01)."""
        with (
            patch("src.main.import_tea", AsyncMock(side_effect=PrivateAddressRejectedError())),
            patch("src.main.close_browser_session", AsyncMock()) as mock_close,
        ):
            code = await cli.run_import("http://localhost/")

        assert code == 1
        assert json.loads(capsys.readouterr().out)["error"] == "Cannot scrape private/local URLs"
        mock_close.assert_awaited_once()


class TestMain:
    """Argument handling."""

    def test_import_requires_url(self, monkeypatch: pytest.MonkeyPatch):
        """import without --url exits with a usage error (TC-CLI-A-02)."""
        monkeypatch.setattr(sys, "argv", ["tea-import", "import"])

        with patch("src.main.initialize"), pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 2

    def test_serve(self, monkeypatch: pytest.MonkeyPatch):
        """serve passes host/port through to uvicorn (TC-CLI-N-03)."""
        monkeypatch.setattr(sys, "argv", ["tea-import", "serve", "--port", "8123"])

        with patch("src.main.initialize"), patch("uvicorn.run") as mock_run:
            cli.main()

        mock_run.assert_called_once_with(
            "src.server.main:app",
            host="0.0.0.0",
            port=8123,
            log_config=None,
        )
