"""
PURPOSE: Tests for structlog configuration.
"""

import json

from rugsense.utils.logger import get_logger, setup_logging


class TestLogging:
    """Test level filtering and JSON rendering."""

    def test_records_below_level_are_dropped(self, capsys):
        """Test a WARNING threshold drops info records and renders warnings as JSON."""
        setup_logging("WARNING")
        logger = get_logger("tests.logging")

        logger.info("episode_started", game_id="g1")
        logger.warning("episode_start_rejected", game_id="g2", open_game_id="g1")

        lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["event"] == "episode_start_rejected"
        assert record["level"] == "warning"
        assert record["module"] == "tests.logging"
        assert record["open_game_id"] == "g1"
        assert "timestamp" in record

    def test_unknown_level_falls_back_to_info(self, capsys):
        """Test an unknown level name keeps info records."""
        setup_logging("chatty")
        get_logger("tests.logging").info("decision_service_initialized")

        out = capsys.readouterr().out
        assert "decision_service_initialized" in out
        setup_logging("WARNING")
