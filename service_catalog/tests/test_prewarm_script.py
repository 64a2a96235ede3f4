"""
Unit tests for the dropdown prewarm command-line script.
"""

import json
from unittest.mock import AsyncMock, patch

from scripts import prewarm_dropdown_cache
from shared.config import BaseConfig


def _summary(success: bool) -> dict:
    return {
        "cache_healthy": True,
        "prewarm": {"success": success, "message": "Dropdown cache warmed" if success else "Dropdown cache write failed"},
    }


class TestPrewarmScript:
    """Test cases for the prewarm script entry point."""

    def test_exit_code_follows_prewarm_result(self):
        config = BaseConfig()

        with patch.object(prewarm_dropdown_cache, "prewarm", new=AsyncMock(return_value=_summary(True))):
            assert prewarm_dropdown_cache.main(config, []) == 0

        with patch.object(prewarm_dropdown_cache, "prewarm", new=AsyncMock(return_value=_summary(False))):
            assert prewarm_dropdown_cache.main(config, []) == 1

    def test_arguments_override_config(self):
        config = BaseConfig()

        with patch.object(prewarm_dropdown_cache, "prewarm", new=AsyncMock(return_value=_summary(True))) as prewarm:
            prewarm_dropdown_cache.main(config, [
                "--redis-url", "redis://cache:6379/2",
                "--postgres-dsn", "postgresql://ref@db/catalog",
                "--ttl", "1200",
                "--check-health",
            ])

        kwargs = prewarm.await_args.kwargs
        assert kwargs["redis_url"] == "redis://cache:6379/2"
        assert kwargs["postgres_dsn"] == "postgresql://ref@db/catalog"
        assert kwargs["ttl_seconds"] == 1200
        assert kwargs["check_health"] is True

    def test_defaults_come_from_config(self):
        config = BaseConfig(redis_url="redis://configured:6379/0", dropdown_cache_ttl=900)

        with patch.object(prewarm_dropdown_cache, "prewarm", new=AsyncMock(return_value=_summary(True))) as prewarm:
            prewarm_dropdown_cache.main(config, [])

        kwargs = prewarm.await_args.kwargs
        assert kwargs["redis_url"] == "redis://configured:6379/0"
        assert kwargs["ttl_seconds"] == 900
        assert kwargs["check_health"] is False

    def test_summary_written_to_output(self, tmp_path):
        output = tmp_path / "prewarm.json"

        with patch.object(prewarm_dropdown_cache, "prewarm", new=AsyncMock(return_value=_summary(True))):
            prewarm_dropdown_cache.main(BaseConfig(), ["--output", str(output)])

        assert json.loads(output.read_text())["prewarm"]["success"] is True

    def test_unreachable_store_exits_non_zero(self):
        failing = AsyncMock(side_effect=ConnectionRefusedError("refused"))

        with patch.object(prewarm_dropdown_cache, "prewarm", new=failing):
            assert prewarm_dropdown_cache.main(BaseConfig(), []) == 1
