import dataclasses
import smtplib

from dynstandby import alerts
from dynstandby.models import FleetKey, FleetState
from dynstandby.settings import Settings

CONFIGURED = Settings(
    enable_email=True,
    smtp_host="smtp.test",
    smtp_port=2525,
    smtp_user="ops",
    smtp_password="secret",
    email_from="dsb@test",
    email_to="oncall@test",
)

FLEET = FleetState(FleetKey("prod", "build-a"), "b-123", active=100, standby=0, target_standby=20)


class _FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        assert (user, password) == ("ops", "secret")

    def send_message(self, msg):
        _FakeSMTP.sent.append((self.host, self.port, msg))


def test_escalation_message_describes_the_fleet():
    msg = alerts.escalation_message(FLEET, 80, "escalate-4x", floor=20)
    assert msg["Subject"] == "Standby escalated: prod/build-a (20 -> 80)"
    body = msg.get_content()
    assert "Build: b-123" in body
    assert "Active: 100" in body
    assert "Reason: escalate-4x" in body
    assert "Floor: 20" in body


def test_disabled_by_default(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    assert alerts.send_escalation_alert(FLEET, 80, "escalate-4x", settings=Settings(enable_email=False)) is False


def test_incomplete_config_does_not_send(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    incomplete = dataclasses.replace(CONFIGURED, smtp_password=None)
    assert alerts.send_escalation_alert(FLEET, 80, "escalate-4x", settings=incomplete) is False


def test_sends_when_configured(monkeypatch):
    _FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    assert alerts.send_escalation_alert(FLEET, 30, "escalate-1.5x", 20, CONFIGURED) is True
    host, port, msg = _FakeSMTP.sent[0]
    assert (host, port) == ("smtp.test", 2525)
    assert (msg["From"], msg["To"]) == ("dsb@test", "oncall@test")
    assert msg["Subject"] == "Standby escalated: prod/build-a (20 -> 30)"


def test_smtp_failure_returns_false(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("no smtp")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    assert alerts.send_escalation_alert(FLEET, 80, "escalate-4x", settings=CONFIGURED) is False
