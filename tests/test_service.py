"""
Integration tests for the usage summary service.

Builds fake Claude and Codex data directories and runs full queries.
"""

import json
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from ccusage_monitor.core.models import UsageSummary
from ccusage_monitor.core.service import (
    CcusageService,
    ProviderMode,
    ProviderSelectionError,
    UsageError,
    get_usage,
    parse_mode,
    resolve_timezone,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
RECENT = (NOW - timedelta(minutes=10)).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def claude_line(timestamp: str = RECENT) -> str:
    return json.dumps({
        "timestamp": timestamp,
        "message": {
            "usage": {
                "input_tokens": 1200,
                "output_tokens": 340,
                "cache_creation_input_tokens": 10,
                "cache_read_input_tokens": 5,
                "total_cost_usd": 0.42,
            },
        },
    })


def codex_lines(model: str = "gpt-5-mini", rate_limits=None) -> list:
    payload = {
        "type": "token_count",
        "info": {
            "last_token_usage": {
                "input_tokens": 1000,
                "cached_input_tokens": 200,
                "output_tokens": 1500,
                "reasoning_output_tokens": 0,
                "total_tokens": 2500,
            },
        },
        "rate_limits": rate_limits or {
            "primary": {"used_percent": 12.5, "window_minutes": 299, "resets_in_seconds": 1800},
            "secondary": {"used_percent": 45.6, "window_minutes": 10079, "resets_in_seconds": 7200},
        },
    }
    return [
        json.dumps({"type": "turn_context", "timestamp": RECENT, "payload": {"model": model}}),
        json.dumps({"type": "event_msg", "timestamp": RECENT, "payload": payload}),
    ]


class TestCcusageService:
    """Test full queries against fake data directories."""

    def setup_method(self):
        """Create a fake home, a Claude override and a CODEX_HOME."""
        self.temp_dir = Path(tempfile.mkdtemp()).resolve()
        self.home = self.temp_dir / "home"
        self.claude_root = self.temp_dir / "claude-config"
        self.codex_home = self.temp_dir / "codex-home"

        (self.home / ".codex" / "sessions").mkdir(parents=True)
        (self.claude_root / "projects" / "demo").mkdir(parents=True)
        (self.codex_home / "sessions").mkdir(parents=True)

        self.environ = {
            "CLAUDE_CONFIG_DIR": str(self.claude_root),
            "CODEX_HOME": str(self.codex_home),
        }
        self._write(self.claude_root / "projects" / "demo" / "session.jsonl", [claude_line()])
        self._write(self.codex_home / "sessions" / "session.jsonl", codex_lines())

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, path: Path, lines) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def _service(self) -> CcusageService:
        return CcusageService(environ=self.environ, home=self.home)

    def test_aggregates_both_providers(self):
        """Verify a both-mode query returns Claude and Codex results."""
        summary = self._service().get_usage("both", timezone="UTC", locale="en-US", now=NOW)

        assert summary.errors == []

        claude = summary.claude
        assert claude.available is True
        assert claude.has_data is True
        assert claude.total_tokens == 1555
        assert claude.cost_usd == pytest.approx(0.42)
        assert claude.remaining_time == "4h 50m"
        assert claude.block_count == 1

        codex = summary.codex
        assert codex.available is True
        assert codex.has_data is True
        assert codex.total_tokens == 2500
        assert codex.timezone == "UTC"
        assert codex.missing_directories == []
        assert codex.issues == []
        assert codex.models[0].model == "gpt-5-mini"
        assert codex.models[0].is_fallback_model is False
        expected = (800 / 1_000_000) * 0.6 + (200 / 1_000_000) * 0.06 + (1500 / 1_000_000) * 2
        assert codex.cost_usd == pytest.approx(expected, abs=1e-12)
        assert codex.rate_limits.primary.label == "5h"
        assert codex.rate_limits.primary.resets_in_seconds == pytest.approx(1200)
        assert codex.rate_limits.secondary.label == "1 week"
        assert codex.rate_limits.secondary.resets_in_seconds == pytest.approx(6600)
        assert codex.date_key == "2024-01-01"
        assert codex.display_date == "Jan 01, 2024"

    def test_resets_at_values(self):
        """Verify absolute resets in seconds and milliseconds."""
        limits = {
            "primary": {"used_percent": 20, "window_minutes": 300,
                        "resets_at": int((NOW + timedelta(hours=1)).timestamp())},
            "secondary": {"used_percent": 30, "window_minutes": 10080,
                          "resets_at": int((NOW + timedelta(days=2)).timestamp() * 1000)},
        }
        self._write(self.codex_home / "sessions" / "session.jsonl", codex_lines(rate_limits=limits))

        codex = self._service().get_usage("codex", timezone="UTC", now=NOW).codex

        assert codex.rate_limits.primary.resets_in_seconds == pytest.approx(3600)
        assert codex.rate_limits.secondary.label == "1 week"
        assert codex.rate_limits.secondary.resets_in_seconds == pytest.approx(172800)

    def test_single_provider_modes(self):
        """Verify single-provider modes only query that provider."""
        claude_only = self._service().get_usage(ProviderMode.CLAUDE, now=NOW)
        assert claude_only.claude is not None
        assert claude_only.codex is None

        codex_only = self._service().get_usage("codex", timezone="UTC", now=NOW)
        assert codex_only.claude is None
        assert codex_only.codex is not None

    def test_missing_claude_directories_not_an_error(self):
        """Verify a nonexistent override and no defaults give an unavailable result."""
        self.environ["CLAUDE_CONFIG_DIR"] = str(self.temp_dir / "nowhere")

        summary = self._service().get_usage("auto", timezone="UTC", now=NOW)

        assert summary.errors == []
        assert summary.claude.available is False
        assert summary.claude.has_data is False
        assert summary.claude.total_tokens == 0
        assert summary.claude.cost_usd == 0.0

    def test_missing_codex_directories_listed(self):
        """Verify missing Codex candidates are reported."""
        shutil.rmtree(self.home / ".codex")

        codex = self._service().get_usage("codex", timezone="UTC", now=NOW).codex

        assert codex.available is True
        assert codex.missing_directories == [self.home / ".codex" / "sessions"]

    def test_legacy_session_uses_fallback(self):
        """Verify a session without turn_context is attributed to the fallback model."""
        self._write(self.codex_home / "sessions" / "session.jsonl", codex_lines()[1:])

        codex = self._service().get_usage("codex", timezone="UTC", now=NOW).codex

        assert codex.models[0].model == "gpt-5"
        assert codex.models[0].is_fallback_model is True
        assert len([i for i in codex.issues if "fallback model" in i]) == 1

    def test_non_finite_counts_do_not_fail_codex(self):
        """Verify a NaN counter in one entry does not fail a codex-only query."""
        bad = json.dumps({
            "type": "event_msg",
            "timestamp": RECENT,
            "payload": {"type": "token_count", "info": {"last_token_usage": {"input_tokens": float("nan")}}},
        })
        lines = codex_lines()
        self._write(self.codex_home / "sessions" / "session.jsonl", [lines[0], bad, lines[1]])

        codex = self._service().get_usage("codex", timezone="UTC", now=NOW).codex

        assert codex.total_tokens == 2500

    def test_idempotent(self):
        """Verify repeated queries over unchanged files give equal summaries."""
        service = self._service()
        first = service.get_usage("both", timezone="UTC", now=NOW)
        second = service.get_usage("both", timezone="UTC", now=NOW)
        assert first == second

    def test_one_provider_failure_isolated(self):
        """Verify a failing pipeline does not hide the other provider."""
        with patch("ccusage_monitor.core.service.load_claude_events", side_effect=RuntimeError("disk on fire")):
            summary = self._service().get_usage("both", timezone="UTC", now=NOW)

        assert summary.claude is None
        assert summary.codex is not None
        assert len(summary.errors) == 1
        assert summary.errors[0].provider == "claude"
        assert summary.errors[0].message == "disk on fire"

    def test_invalid_timezone_fails_codex_only(self):
        """Verify a bad zone is reported as a Codex error."""
        summary = self._service().get_usage("auto", timezone="Not/AZone", now=NOW)
        assert summary.claude is not None
        assert summary.codex is None
        assert summary.errors[0].provider == "codex"

    def test_requested_provider_failure_raises(self):
        """Verify a single-provider query fails when that provider fails."""
        with patch("ccusage_monitor.core.service.load_claude_events", side_effect=RuntimeError("boom")):
            with pytest.raises(UsageError, match="claude: boom") as exc_info:
                self._service().get_usage("claude", now=NOW)
        assert exc_info.value.errors[0].provider == "claude"

    def test_total_failure_lists_every_error(self):
        """Verify both/auto fails when neither provider produced a result."""
        with patch("ccusage_monitor.core.service.load_claude_events", side_effect=RuntimeError("a")), \
                patch("ccusage_monitor.core.service.collect_log_files", side_effect=OSError("b")):
            with pytest.raises(UsageError) as exc_info:
                self._service().get_usage("both", timezone="UTC", now=NOW)

        message = str(exc_info.value)
        assert message.startswith("Failed to fetch usage data:")
        assert "claude: a" in message
        assert "codex: b" in message

    @pytest.mark.parametrize("mode", [None, "", "gemini"])
    def test_no_provider_selected(self, mode):
        """Verify misconfigured modes fail before any I/O."""
        with patch("ccusage_monitor.core.service.resolve_claude_roots") as roots, \
                patch("ccusage_monitor.core.service.codex_session_candidates") as candidates:
            with pytest.raises(ProviderSelectionError):
                self._service().get_usage(mode, now=NOW)
        roots.assert_not_called()
        candidates.assert_not_called()

    def test_dispose_is_noop(self):
        """Verify dispose can be called repeatedly."""
        service = self._service()
        service.dispose()
        service.dispose()
        assert isinstance(service.get_usage("claude", now=NOW), UsageSummary)

    def test_module_level_get_usage(self, monkeypatch):
        """Verify the convenience function reads the process environment."""
        monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(self.claude_root))
        monkeypatch.setenv("CODEX_HOME", str(self.codex_home))
        monkeypatch.setenv("HOME", str(self.home))

        summary = get_usage("both", timezone="UTC")

        assert summary.claude.available is True
        assert summary.codex.available is True


class TestHelpers:
    """Test mode and zone helpers."""

    def test_parse_mode_normalizes(self):
        """Verify mode strings are case-insensitive."""
        assert parse_mode(" AUTO ") is ProviderMode.AUTO
        assert ProviderMode.AUTO.providers == ("claude", "codex")
        assert ProviderMode.CODEX.providers == ("codex",)

    def test_resolve_named_zone(self):
        """Verify IANA names resolve."""
        tz, name = resolve_timezone("Europe/Berlin")
        assert name == "Europe/Berlin"
        assert datetime(2024, 7, 1, tzinfo=tz).utcoffset() == timedelta(hours=2)

    def test_resolve_host_zone(self):
        """Verify the host zone is used by default."""
        tz, name = resolve_timezone(None)
        assert tz is not None
        assert name.startswith("local")

    def test_unknown_zone(self):
        """Verify unknown names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown time zone"):
            resolve_timezone("Mars/Olympus")
