"""Unit tests for logging configuration."""

import structlog

from infrastructure.logging import configure_logging, redact_secrets


class TestRedactSecrets:
    """Tests for the secret redaction processor."""

    def test_password_is_masked(self):
        """A password never reaches the renderer."""
        event = redact_secrets(None, "info", {"event": "x", "password": "Ab1!Ab1!"})
        assert event == {"event": "x", "password": "***"}

    def test_tokens_are_masked(self):
        """Admin and generic tokens are masked too."""
        event = redact_secrets(
            None, "info", {"event": "x", "admin_token": "s3cret", "token": "t0k"}
        )
        assert event["admin_token"] == "***"
        assert event["token"] == "***"

    def test_other_keys_untouched(self):
        """Ordinary fields pass through unchanged."""
        event = redact_secrets(None, "info", {"event": "x", "identity_key": "USER123"})
        assert event == {"event": "x", "identity_key": "USER123"}


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output_without_tty(self, monkeypatch, capsys):
        """Non-TTY output is JSON with secrets redacted."""
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setattr("sys.stdout.isatty", lambda: False)

        configure_logging("INFO")
        try:
            structlog.get_logger().info("provision_succeeded", password="hunter2")
            output = capsys.readouterr().out
        finally:
            structlog.reset_defaults()

        assert '"event": "provision_succeeded"' in output
        assert "hunter2" not in output

    def test_level_filters_lower_events(self, monkeypatch, capsys):
        """Events below the configured level are dropped."""
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setattr("sys.stdout.isatty", lambda: False)

        configure_logging("WARNING")
        try:
            structlog.get_logger().info("dropped_event")
            output = capsys.readouterr().out
        finally:
            structlog.reset_defaults()

        assert "dropped_event" not in output
