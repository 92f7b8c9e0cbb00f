"""MindSender: calendar to-do manager with an AI task assistant, friends/DMs and e-mail reminders."""

__version__ = "0.1.0"
