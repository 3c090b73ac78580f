"""
Task subsystem.

Components:
- task_models.py: data structures (Series, TaskInstance, Scope)
- materializer.py: occurrence dates -> task instances (dedup + per-series cap)
- series_manager.py: series creation, scope resolution, scoped edit/delete
- task_scheduler.py: generation scheduler with a re-entrancy guard
- task_store.py: SQLite-backed storage for series and instances
- task_api.py: small high-level helpers used by the rest of the app
"""
