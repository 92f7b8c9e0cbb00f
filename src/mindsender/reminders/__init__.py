"""
Reminder subsystem.

Components:
- reminder_job.py: one look-ahead pass over due tasks (run_reminder_cycle)
- templates.py: reminder e-mail rendering
- mailer.py: SMTP (aiosmtplib) and console mail transports
"""
