"""SMTP delivery tests with smtplib patched out."""
import smtplib
from unittest.mock import MagicMock, patch

from pinger.services.email_sender import EmailConfig, EmailSenderService, parse_recipients


def _sender(**overrides) -> EmailSenderService:
    values = {"host": "smtp.test", "port": 25, "from_address": "monitor@test"}
    values.update(overrides)
    return EmailSenderService(EmailConfig(**values))


def _smtp_mock():
    server = MagicMock()
    server.__enter__.return_value = server
    return server


class TestEmailSender:
    def test_parse_recipients(self):
        assert parse_recipients("a@x.test, b@x.test,,") == ["a@x.test", "b@x.test"]
        assert parse_recipients("") == []

    async def test_plain_smtp_delivery(self):
        server = _smtp_mock()
        with patch("pinger.services.email_sender.smtplib.SMTP", return_value=server) as smtp:
            ok = await _sender().send_email("ops@x.test", "subject", "<p>hi</p>")

        assert ok is True
        smtp.assert_called_once_with("smtp.test", 25, timeout=30)
        server.starttls.assert_not_called()
        server.login.assert_not_called()
        from_addr, recipients, _ = server.sendmail.call_args.args
        assert from_addr == "monitor@test"
        assert recipients == ["ops@x.test"]

    async def test_starttls_and_login(self):
        server = _smtp_mock()
        with patch("pinger.services.email_sender.smtplib.SMTP", return_value=server):
            ok = await _sender(port=587, starttls=True, username="u", password="p").send_email(
                "ops@x.test", "subject", "<p>hi</p>"
            )

        assert ok is True
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")

    async def test_implicit_tls_port(self):
        server = _smtp_mock()
        with patch("pinger.services.email_sender.smtplib.SMTP_SSL", return_value=server) as smtps:
            ok = await _sender(port=465).send_email("ops@x.test", "subject", "<p>hi</p>")

        assert ok is True
        assert smtps.call_args.args == ("smtp.test", 465)

    async def test_auth_failure_returns_false(self):
        server = _smtp_mock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with patch("pinger.services.email_sender.smtplib.SMTP", return_value=server):
            ok = await _sender(username="u", password="wrong").send_email("ops@x.test", "s", "b")

        assert ok is False

    async def test_connection_failure_returns_false(self):
        with patch(
            "pinger.services.email_sender.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            ok = await _sender().send_email("ops@x.test", "s", "b")

        assert ok is False

    async def test_no_recipients(self):
        assert await _sender().send_email(" , ", "s", "b") is False
