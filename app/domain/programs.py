"""
Program Domain
==============

Programs (syllabus-derived instances) and the rules that derive which
applications a program needs and how its devices are selected.

The program record is duck-typed in the store: materials and sessions are
free-form dicts, and the display name lives in ``title``, ``course_topic`` or
``subject`` depending on who created the record. Everything here tolerates
missing keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Union

# Fallback order for the display name
TITLE_FIELDS: tuple[str, ...] = ("title", "course_topic", "subject")

# (collection, fields holding app ids) walked by resolve_app_ids
_APP_REFERENCE_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("teaching_materials", ("app_ids", "experiences")),
    ("enrichment_materials", ("app_ids", "experiences")),
    ("sessions", ("app_ids", "experience_ids")),
)


@dataclass
class Program:
    """A schedulable program.

    Attributes:
        id: Store identifier
        title / course_topic / subject: Candidate display names
        assigned_device_ids: Explicit device assignment (manual override)
        teaching_materials / enrichment_materials: ``{app_ids, experiences}`` items
        sessions: ``{app_ids, experience_ids}`` items
        institution_id: Owning institution, if bound
    """

    id: str
    title: str | None = None
    course_topic: str | None = None
    subject: str | None = None
    assigned_device_ids: list[str] = field(default_factory=list)
    teaching_materials: list[dict[str, Any]] = field(default_factory=list)
    enrichment_materials: list[dict[str, Any]] = field(default_factory=list)
    sessions: list[dict[str, Any]] = field(default_factory=list)
    institution_id: str | None = None

    @property
    def display_title(self) -> str:
        return display_title(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "course_topic": self.course_topic,
            "subject": self.subject,
            "assigned_device_ids": list(self.assigned_device_ids),
            "teaching_materials": list(self.teaching_materials),
            "enrichment_materials": list(self.enrichment_materials),
            "sessions": list(self.sessions),
            "institution_id": self.institution_id,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Program":
        return Program(
            id=str(data["id"]),
            title=data.get("title"),
            course_topic=data.get("course_topic"),
            subject=data.get("subject"),
            assigned_device_ids=[str(i) for i in (data.get("assigned_device_ids") or [])],
            teaching_materials=list(data.get("teaching_materials") or []),
            enrichment_materials=list(data.get("enrichment_materials") or []),
            sessions=list(data.get("sessions") or []),
            institution_id=data.get("institution_id") or data.get("school_id"),
        )


def _field(program: Program | dict[str, Any], name: str) -> Any:
    if isinstance(program, dict):
        return program.get(name)
    return getattr(program, name, None)


def display_title(program: Program | dict[str, Any] | None, default: str = "") -> str:
    """Single display name for a program.

    Fallback order: ``title``, ``course_topic``, ``subject``, then the id.
    """
    if program is None:
        return default
    for name in TITLE_FIELDS:
        value = _field(program, name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    program_id = _field(program, "id")
    return str(program_id) if program_id is not None else default


def resolve_app_ids(program: Program | dict[str, Any]) -> set[str]:
    """Union of every application referenced by a program.

    Walks teaching and enrichment materials (``app_ids`` and
    ``experiences``) and sessions (``app_ids`` and ``experience_ids``).
    Absent collections count as empty. Recomputed on every call.
    """
    app_ids: set[str] = set()
    for collection, keys in _APP_REFERENCE_FIELDS:
        for item in _field(program, collection) or ():
            if not isinstance(item, dict):
                continue
            for key in keys:
                for app_id in item.get(key) or ():
                    if app_id:
                        app_ids.add(str(app_id))
    return app_ids


# ==================== Device Selection ====================


@dataclass(frozen=True)
class ExplicitSelection:
    """Devices assigned to the program by hand; wins over app presence."""

    device_ids: tuple[str, ...]

    kind = "explicit"


@dataclass(frozen=True)
class DerivedSelection:
    """Devices qualify by carrying at least one of the program's apps."""

    app_ids: frozenset[str]

    kind = "derived"


DeviceSelection = Union[ExplicitSelection, DerivedSelection]


def selection_for(program: Program | dict[str, Any]) -> DeviceSelection:
    """Explicit when ``assigned_device_ids`` is non-empty, derived otherwise."""
    assigned: Iterable[Any] = _field(program, "assigned_device_ids") or ()
    explicit = tuple(dict.fromkeys(str(i) for i in assigned if i))
    if explicit:
        return ExplicitSelection(device_ids=explicit)
    return DerivedSelection(app_ids=frozenset(resolve_app_ids(program)))
