"""
Service Organization
====================
Services are organized by their lifecycle and instantiation pattern:

**application/**
  Services managed by ServiceContainer, one instance per container.
  Examples: ScheduleEntryService, DeviceAssignmentService

**utilities/**
  Stateless helpers over snapshots of store data.
  Examples: conflict detection, program device resolution

Store interfaces live in ``protocols.py``; wiring lives in ``container.py``.
"""
