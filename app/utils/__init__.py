"""Shared helpers: time parsing, retry policy, batch execution, concurrency."""
