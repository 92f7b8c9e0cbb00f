"""
Task subsystem.

Components:
- task_models.py: data structures (Task)
- task_store.py: SQLite-backed storage; TaskStore (unscoped, admin/reminder job)
  and ScopedTaskStore (bound to one owner, used by the console and the assistant)
"""
