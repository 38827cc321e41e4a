"""Scheduling and device-conflict core for a fleet of VR headsets."""

__version__ = "1.0.0"
