"""Refresh scheduling, runtime wiring and command line entry point."""
