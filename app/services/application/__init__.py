"""Application services: schedule entries and device assignment."""
