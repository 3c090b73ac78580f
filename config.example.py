# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use .env (local, gitignored) for overrides.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "CADENCE_APP_NAME": "App display name, used as the console prompt (default: cadence).",
    "CADENCE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "CADENCE_CONSOLE_ENABLED": "Enable console REPL (true/false, default: true).",
    # Paths (gitignored)
    "CADENCE_DATA_DIR": "Local data directory (default: .local/cadence).",
    "CADENCE_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # Generation tuning
    "CADENCE_GENERATION_WINDOW_DAYS": "Days ahead to materialize instances for (default: 30).",
    "CADENCE_LOOKAHEAD_DAYS": "Top up a series when its latest open task is closer than this (default: 7).",
    "CADENCE_MAX_INSTANCES_PER_SERIES": "Hard cap on instances per series (default: 100).",
    "CADENCE_INITIAL_GENERATION_DELAY_SECONDS": "Settle delay before the first pass (default: 0.1).",
    "CADENCE_GENERATION_INTERVAL_SECONDS": "Seconds between periodic passes (default: 3600).",
}
