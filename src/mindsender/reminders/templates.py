# src/mindsender/reminders/templates.py

from __future__ import annotations

from datetime import tzinfo
from html import escape

from ..accounts.profile_models import Profile
from ..config import ReminderSettings
from ..core.ports import OutgoingEmail
from ..tasks.task_models import Task

_FALLBACK_NAME = "there"

_HTML = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;background-color:#f4f4f5;font-family:'Segoe UI',Tahoma,Verdana,sans-serif;">
  <div style="max-width:600px;margin:40px auto;background-color:#ffffff;border-radius:16px;overflow:hidden;">
    <div style="background:linear-gradient(135deg,#7c3aed 0%,#4f46e5 100%);padding:30px 40px;text-align:center;">
      <h1 style="color:#ffffff;margin:0;font-size:24px;">{app_name}</h1>
    </div>
    <div style="padding:40px;">
      <h2 style="color:#1f2937;margin-top:0;font-size:20px;">Hi, {first_name}</h2>
      <p style="color:#4b5563;line-height:1.6;font-size:16px;">
        You have a task coming up soon. Here are the details:
      </p>
      <div style="background-color:#f8fafc;border:1px solid #e2e8f0;border-left:4px solid #7c3aed;border-radius:12px;padding:24px;margin:24px 0;">
        <h3 style="margin:0 0 8px 0;color:#1e293b;font-size:18px;">{subject}</h3>
        {description_block}
        <p style="margin:16px 0 0 0;color:#7c3aed;font-size:13px;font-weight:600;">Due: {due}</p>
      </div>
      <div style="text-align:center;margin-top:32px;">
        <a href="{app_url}" style="display:inline-block;background-color:#111827;color:#ffffff;padding:14px 28px;text-decoration:none;border-radius:50px;font-weight:600;font-size:14px;">Open dashboard</a>
      </div>
    </div>
    <div style="background-color:#f8fafc;padding:20px;text-align:center;border-top:1px solid #e2e8f0;">
      <p style="margin:0;color:#94a3b8;font-size:12px;">Sent automatically by {from_name}.</p>
    </div>
  </div>
</body>
</html>
"""


def format_due(task: Task, tz: tzinfo) -> str:
    """Due time in the display timezone, e.g. 'Fri 16 Oct 2026, 14:30 CST'."""
    local = task.due_at.astimezone(tz)
    return local.strftime("%a %d %b %Y, %H:%M %Z").strip()


def reminder_subject(task: Task) -> str:
    return f"Reminder: {task.subject}"


def render_reminder(task: Task, profile: Profile, settings: ReminderSettings, *, app_name: str = "MindSender") -> OutgoingEmail:
    """Build the reminder e-mail for one task. User-provided text is HTML-escaped."""
    due = format_due(task, settings.tzinfo())
    first_name = profile.first_name or _FALLBACK_NAME

    description_block = ""
    if task.description:
        description_block = (
            '<p style="margin:0 0 16px 0;color:#64748b;font-size:14px;">'
            f"{escape(task.description)}</p>"
        )

    html = _HTML.format(
        app_name=escape(app_name),
        first_name=escape(first_name),
        subject=escape(task.subject),
        description_block=description_block,
        due=escape(due),
        app_url=escape(settings.app_url, quote=True),
        from_name=escape(settings.from_name),
    )

    lines = [
        f"Hi, {first_name}",
        "",
        "You have a task coming up soon:",
        "",
        f"  {task.subject}",
    ]
    if task.description:
        lines.append(f"  {task.description}")
    lines += [
        f"  Due: {due}",
        "",
        f"Open your dashboard: {settings.app_url}",
        "",
        f"-- {settings.from_name}",
    ]

    return OutgoingEmail(
        from_address=settings.from_address,
        from_name=settings.from_name,
        to_address=profile.email,
        subject=reminder_subject(task),
        html=html,
        text="\n".join(lines),
    )
