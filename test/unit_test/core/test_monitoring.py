"""Unit tests for the optional Logfire integration."""

import logging
from unittest.mock import MagicMock

import pytest

from session_continuity.core import monitoring
from session_continuity.core.config import Settings


@pytest.fixture
def fake_logfire(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace the logfire module used by monitoring with a mock."""
    fake = MagicMock()
    monkeypatch.setattr(monitoring, "logfire", fake)
    yield fake
    monitoring.shutdown_logfire()


class TestInitializeLogfire:
    """Test initialize_logfire gating."""

    def test_disabled_by_default(self, fake_logfire: MagicMock):
        """Test nothing is configured when LOGFIRE_ENABLED is false."""
        assert monitoring.initialize_logfire(Settings(_env_file=None)) is False
        fake_logfire.configure.assert_not_called()
        assert monitoring.is_logfire_active() is False

    def test_enabled_without_token(self, fake_logfire: MagicMock, caplog: pytest.LogCaptureFixture):
        """Test a missing token disables monitoring with a warning."""
        with caplog.at_level(logging.WARNING, logger="session_continuity.core.monitoring"):
            result = monitoring.initialize_logfire(Settings(_env_file=None, logfire_enabled=True))

        assert result is False
        fake_logfire.configure.assert_not_called()
        assert "LOGFIRE_TOKEN is not set" in caplog.text

    def test_enabled_with_token_instruments_engine(self, fake_logfire: MagicMock):
        """Test configure and SQLAlchemy instrumentation are called."""
        settings = Settings(
            _env_file=None,
            logfire_enabled=True,
            logfire_token="secret",
            logfire_service_name="svc",
            logfire_environment="test",
        )
        engine = MagicMock()

        assert monitoring.initialize_logfire(settings, engine) is True

        fake_logfire.configure.assert_called_once_with(token="secret", service_name="svc", environment="test")
        fake_logfire.instrument_sqlalchemy.assert_called_once_with(engine=engine.sync_engine)
        assert monitoring.is_logfire_active() is True

    def test_configure_failure_is_reported(self, fake_logfire: MagicMock):
        """Test a failing configure leaves monitoring off."""
        fake_logfire.configure.side_effect = RuntimeError("boom")
        settings = Settings(_env_file=None, logfire_enabled=True, logfire_token="secret")

        assert monitoring.initialize_logfire(settings) is False
        assert monitoring.is_logfire_active() is False


class TestStructuredRecords:
    """Test the record helpers in both modes."""

    def test_emission_failure_logs_warning(self, fake_logfire: MagicMock, caplog: pytest.LogCaptureFixture):
        """Test dropped emissions are logged even without Logfire."""
        with caplog.at_level(logging.WARNING, logger="session_continuity.core.monitoring"):
            monitoring.log_emission_failure("s-1", "work.started", ValueError("bad payload"))

        assert "Event emission dropped" in caplog.text
        assert "s-1" in caplog.text
        fake_logfire.warn.assert_not_called()

    def test_emission_failure_forwarded_when_active(self, fake_logfire: MagicMock):
        """Test dropped emissions reach Logfire when it is active."""
        monitoring.initialize_logfire(Settings(_env_file=None, logfire_enabled=True, logfire_token="t"))

        monitoring.log_emission_failure("s-1", "work.started", ValueError("bad payload"))

        fake_logfire.warn.assert_called_once()
        assert fake_logfire.warn.call_args.kwargs["error_type"] == "ValueError"

    def test_resume_outcome_forwarded_when_active(self, fake_logfire: MagicMock):
        """Test resume outcomes are structured Logfire records when active."""
        monitoring.initialize_logfire(Settings(_env_file=None, logfire_enabled=True, logfire_token="t"))

        monitoring.log_resume_outcome("resumed", "proj", session_id="proj-PS-000001", confidence=90)

        fake_logfire.info.assert_called_once_with(
            "Resume {outcome}", outcome="resumed", hint="proj", session_id="proj-PS-000001", confidence=90
        )
