"""Operator email for standby escalations (opt-in via DSB_ENABLE_EMAIL)."""
from __future__ import annotations

import smtplib
from email.message import EmailMessage

from .models import FleetState
from .settings import Settings, settings as default_settings


def escalation_message(fleet: FleetState, new_target: int, reason: str, floor: int | None = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"Standby escalated: {fleet.key} ({fleet.target_standby} -> {new_target})"
    lines = [
        f"Fleet: {fleet.key}",
        f"Build: {fleet.build_id}",
        f"Active: {fleet.active}",
        f"Standing by: {fleet.standby}",
        f"Target: {fleet.target_standby} -> {new_target}",
        f"Reason: {reason}",
    ]
    if floor is not None:
        lines.append(f"Floor: {floor}")
    msg.set_content("\n".join(lines) + "\n")
    return msg


def _smtp_ready(s: Settings) -> bool:
    return s.enable_email and all(
        [s.smtp_host, s.smtp_port, s.smtp_user, s.smtp_password, s.email_from, s.email_to]
    )


def send_escalation_alert(
    fleet: FleetState,
    new_target: int,
    reason: str,
    floor: int | None = None,
    settings: Settings | None = None,
) -> bool:
    """Mail the on-call address about an escalated fleet.

    Returns False without sending when email is disabled or the SMTP settings
    (DSB_SMTP_HOST/PORT/USER/PASSWORD, DSB_EMAIL_FROM/TO) are incomplete, and
    when the SMTP exchange fails; an alert never fails a pass.
    """
    s = settings or default_settings
    if not _smtp_ready(s):
        return False

    msg = escalation_message(fleet, new_target, reason, floor)
    msg["From"] = s.email_from
    msg["To"] = s.email_to
    try:
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(s.smtp_user, s.smtp_password)
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError):
        return False
