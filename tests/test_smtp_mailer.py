"""Tests for the SMTP and console email adapters."""

import email
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from quiet_hours.adapters.smtp_mailer import SmtpMailer
from quiet_hours.ports.email_port import DispatchError, ReminderEmail


def _message():
    return ReminderEmail(
        to="ada@example.com",
        subject="Quiet Block Reminder: Deep work",
        text="Hello Ada,",
        html="<p>Hello <strong>Ada</strong>,</p>",
    )


def _mailer(**overrides):
    kwargs = dict(
        host="smtp.example.com",
        port=587,
        username="bot@example.com",
        password="secret",
        from_name="Quiet Hours Scheduler",
    )
    kwargs.update(overrides)
    return SmtpMailer(**kwargs)


class TestSmtpSend:
    @pytest.mark.asyncio
    async def test_starttls_send(self):
        mock_smtp_cls = MagicMock()
        server = mock_smtp_cls.return_value

        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            await _mailer().deliver(_message())

        mock_smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "secret")
        from_addr, to_addrs, _ = server.sendmail.call_args.args
        assert from_addr == "bot@example.com"
        assert to_addrs == ["ada@example.com"]
        server.quit.assert_called_once()

    @pytest.mark.asyncio
    async def test_ssl_uses_smtp_ssl(self):
        mock_ssl_cls = MagicMock()
        mock_smtp_cls = MagicMock()

        with (
            patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP_SSL", mock_ssl_cls),
            patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls),
        ):
            await _mailer(port=465, security="ssl").deliver(_message())

        mock_ssl_cls.assert_called_once_with("smtp.example.com", 465, timeout=30)
        mock_smtp_cls.assert_not_called()
        mock_ssl_cls.return_value.starttls.assert_not_called()

    @pytest.mark.asyncio
    async def test_plain_skips_starttls(self):
        mock_smtp_cls = MagicMock()
        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            await _mailer(security="none").deliver(_message())
        mock_smtp_cls.return_value.starttls.assert_not_called()

    @pytest.mark.asyncio
    async def test_mime_carries_both_parts(self):
        mock_smtp_cls = MagicMock()
        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            await _mailer(from_address="noreply@example.com").deliver(_message())

        raw = mock_smtp_cls.return_value.sendmail.call_args.args[2]
        parsed = email.message_from_string(raw)
        assert parsed["To"] == "ada@example.com"
        assert parsed["Subject"] == "Quiet Block Reminder: Deep work"
        assert "noreply@example.com" in parsed["From"]
        assert [p.get_content_type() for p in parsed.get_payload()] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_missing_credentials_raises(self):
        mock_smtp_cls = MagicMock()
        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            with pytest.raises(DispatchError, match="credentials"):
                await _mailer(password="").deliver(_message())
        mock_smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_auth_failure_becomes_dispatch_error(self):
        mock_smtp_cls = MagicMock()
        server = mock_smtp_cls.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Auth failed")

        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            with pytest.raises(DispatchError):
                await _mailer().deliver(_message())

        server.sendmail.assert_not_called()
        server.quit.assert_called_once()

    @pytest.mark.asyncio
    async def test_disconnect_on_quit_after_send_is_success(self):
        mock_smtp_cls = MagicMock()
        server = mock_smtp_cls.return_value
        server.quit.side_effect = smtplib.SMTPServerDisconnected("closed")

        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            await _mailer().deliver(_message())

        server.sendmail.assert_called_once()
        server.quit.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_failure_not_masked_by_quit_failure(self):
        mock_smtp_cls = MagicMock()
        server = mock_smtp_cls.return_value
        server.sendmail.side_effect = smtplib.SMTPRecipientsRefused({"ada@example.com": (550, b"no")})
        server.quit.side_effect = smtplib.SMTPServerDisconnected("closed")

        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            with pytest.raises(DispatchError, match="ada@example.com"):
                await _mailer().deliver(_message())

    @pytest.mark.asyncio
    async def test_connection_error_becomes_dispatch_error(self):
        mock_smtp_cls = MagicMock(side_effect=ConnectionRefusedError("refused"))
        with patch("quiet_hours.adapters.smtp_mailer.smtplib.SMTP", mock_smtp_cls):
            with pytest.raises(DispatchError, match="ada@example.com"):
                await _mailer().deliver(_message())


class TestConsoleMailer:
    @pytest.mark.asyncio
    async def test_collects_messages(self, console_mailer):
        await console_mailer.deliver(_message())
        assert [m.to for m in console_mailer.outbox] == ["ada@example.com"]
