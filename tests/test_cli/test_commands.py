"""Tests for CLI commands."""

import json
from datetime import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from medibook.cli.commands import app
from medibook.scheduling import InvalidInputError, TimeSlot


runner = CliRunner()


@pytest.fixture
def sample_slots():
    return [
        TimeSlot(start_time=time(9, 0), end_time=time(9, 30)),
        TimeSlot(start_time=time(9, 30), end_time=time(10, 0), is_available=False),
    ]


class TestVersionCommand:
    """Tests for version command."""

    def test_version_command(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "MediBook" in result.stdout
        assert "0.1.0" in result.stdout


class TestSlotsCommand:
    """Tests for slots command."""

    def test_slots_table(self, sample_slots):
        with patch("medibook.cli.commands.load_slots", AsyncMock(return_value=sample_slots)) as load:
            result = runner.invoke(app, ["slots", "doc-1", "2024-01-02"])

        assert result.exit_code == 0
        load.assert_awaited_once_with("doc-1", "2024-01-02")
        assert "09:00" in result.stdout
        assert "1/2 slots open" in result.stdout

    def test_slots_json(self, sample_slots):
        with patch("medibook.cli.commands.load_slots", AsyncMock(return_value=sample_slots)):
            result = runner.invoke(app, ["slots", "doc-1", "2024-01-02", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[1] == {"startTime": "09:30", "endTime": "10:00", "isAvailable": False}

    def test_slots_empty_day(self):
        with patch("medibook.cli.commands.load_slots", AsyncMock(return_value=[])):
            result = runner.invoke(app, ["slots", "doc-1", "2024-01-07"])

        assert result.exit_code == 0
        assert "No schedule" in result.stdout

    def test_slots_invalid_date(self):
        error = InvalidInputError("Invalid date: 'tomorrow' (expected YYYY-MM-DD)")
        with patch("medibook.cli.commands.load_slots", AsyncMock(side_effect=error)):
            result = runner.invoke(app, ["slots", "doc-1", "tomorrow"])

        assert result.exit_code == 1
        assert "Invalid date" in result.stdout


class TestServeCommand:
    def test_serve_uses_factory(self):
        with patch("uvicorn.run") as run:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        run.assert_called_once()
        args, kwargs = run.call_args
        assert args[0] == "medibook.api.app:create_app"
        assert kwargs["port"] == 9000
        assert kwargs["factory"] is True


class TestLoadSlots:
    async def test_engine_disposed_after_failure(self):
        from medibook.cli.commands import load_slots

        factory = MagicMock()
        with patch("medibook.core.database._get_session_factory", MagicMock(return_value=factory)), \
                patch("medibook.core.database.dispose_engine", AsyncMock()) as dispose:
            with pytest.raises(InvalidInputError):
                await load_slots("doc-1", "tomorrow")

        dispose.assert_awaited_once()
