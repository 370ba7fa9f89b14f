"""Email bodies for alerts, pump edges, confirmations and reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

from ..domain.models import Alert, AlertHistory, AlertType, LevelStats, PumpMode

DANGER_COLOR = "#dc3545"
WARNING_COLOR = "#ffc107"
INFO_COLOR = "#0d6efd"


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    text: str
    html: Optional[str] = None


def _layout(title: str, color: str, body: str, dashboard_url: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; padding: 20px; max-width: 600px; margin: 0 auto; border: 1px solid #e4e4e4; border-radius: 5px;">
  <div style="background-color: {color}; padding: 15px; border-radius: 5px 5px 0 0;">
    <h2 style="color: white; text-align: center; margin: 0;">{escape(title)}</h2>
  </div>
  <div style="padding: 20px;">
    {body}
    <div style="text-align: center; margin-top: 30px;">
      <a href="{escape(dashboard_url)}" style="display: inline-block; padding: 10px 20px; background-color: {INFO_COLOR}; color: white; text-decoration: none; border-radius: 5px; font-weight: bold;">Open Dashboard</a>
    </div>
  </div>
  <div style="border-top: 1px solid #e4e4e4; margin-top: 20px; padding-top: 20px;">
    <p style="font-size: 14px; color: #777; text-align: center;">Automatic message from the water level monitoring system. Do not reply.</p>
  </div>
</div>
"""


def _facts(color: str, rows: list[tuple[str, str]]) -> str:
    lines = "".join(
        f'<p style="margin: 6px 0; font-size: 14px; color: #555;"><strong>{escape(k)}:</strong> {escape(v)}</p>'
        for k, v in rows
    )
    return f'<div style="background-color: #f8f9fa; border-left: 4px solid {color}; margin: 20px 0; padding: 15px;">{lines}</div>'


class EmailTemplates:
    def __init__(
        self,
        dashboard_url: str = "http://localhost:3000/dashboard",
        device_name: str = "Water Monitor",
    ) -> None:
        self._dashboard_url = dashboard_url
        self._device_name = device_name

    def alert(self, alert: Alert) -> EmailMessage:
        is_danger = alert.type == AlertType.DANGER
        color = DANGER_COLOR if is_danger else WARNING_COLOR
        subject = f"Water Level {alert.type.value.upper()} Alert"
        action = (
            "Check the system immediately and act to lower the water level!"
            if is_danger
            else "Keep watching the water level and prepare to act if it keeps rising."
        )
        body = f'<p style="font-size: 16px; color: #333;">{escape(alert.message)}</p>' + _facts(
            color,
            [
                ("Alert time", alert.created_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()),
                ("Alert type", alert.type.value.upper()),
                ("Recommended action", action),
            ],
        )
        text = f"{alert.message}\n\n{action}\n\nDashboard: {self._dashboard_url}"
        return EmailMessage(subject, text, _layout(subject, color, body, self._dashboard_url))

    def pump(
        self,
        activated: Optional[bool],
        level: Optional[float],
        unit: str,
        mode: Optional[PumpMode],
    ) -> EmailMessage:
        subject = "Water Pump Activated" if activated else "Water Pump Deactivated"
        how = "automatically" if mode == PumpMode.AUTO else "manually"
        level_text = f"{level:g} {unit}" if level is not None else "unknown"
        if activated:
            message = f"The water pump was activated {how}; water level is {level_text}."
        else:
            message = f"The water pump was deactivated {how}; water level is {level_text}."
        body = f'<p style="font-size: 16px; color: #333;">{escape(message)}</p>' + _facts(
            INFO_COLOR,
            [
                ("Pump status", "Active" if activated else "Inactive"),
                ("Water level", level_text),
                ("Mode", mode.value if mode else "unknown"),
            ],
        )
        return EmailMessage(subject, message, _layout(subject, INFO_COLOR, body, self._dashboard_url))

    def notification_confirmation(self) -> EmailMessage:
        subject = "Water Monitoring Notification Settings"
        message = (
            "Your email notification settings were configured successfully. "
            "You will receive alerts according to the preferences you chose."
        )
        body = f'<p style="font-size: 16px; color: #333;">{escape(message)}</p>'
        return EmailMessage(subject, message, _layout(subject, INFO_COLOR, body, self._dashboard_url))

    def weekly_report(
        self,
        start: datetime,
        end: datetime,
        stats: Optional[LevelStats],
        history: AlertHistory,
    ) -> EmailMessage:
        period = f"{start.date().isoformat()} - {end.date().isoformat()}"
        subject = f"{self._device_name} weekly status report ({period})"
        rows = [("Period", period), ("Device", self._device_name)]
        if stats is not None:
            rows += [
                ("Maximum level", f"{stats.maximum:.1f} {stats.unit}"),
                ("Minimum level", f"{stats.minimum:.1f} {stats.unit}"),
                ("Average level", f"{stats.average:.1f} {stats.unit}"),
                ("Readings", str(stats.samples)),
            ]
        else:
            rows.append(("Readings", "no readings recorded"))
        rows += [
            ("Warning alerts", str(history.warning_count)),
            ("Danger alerts", str(history.danger_count)),
            ("Unacknowledged alerts", str(history.unacknowledged_count)),
        ]
        text = "\n".join(f"{k}: {v}" for k, v in rows)
        body = _facts(INFO_COLOR, rows)
        return EmailMessage(subject, text, _layout(subject, INFO_COLOR, body, self._dashboard_url))
