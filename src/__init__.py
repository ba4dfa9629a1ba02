"""
Climate wrangling and lapse-rate analysis

Modules:
- climate: tidy table operations, grouped statistics and per-group
  temperature-vs-elevation fits, with a Typer CLI and idempotent tasks
"""
