"""
Tests for program app resolution, display titles and device selection.
"""

from __future__ import annotations

from app.domain.programs import (
    DerivedSelection,
    ExplicitSelection,
    Program,
    display_title,
    resolve_app_ids,
    selection_for,
)


class TestResolveAppIds:
    def test_unions_every_collection(self):
        program = Program(
            id="p1",
            teaching_materials=[{"app_ids": ["a1"], "experiences": ["a2"]}],
            enrichment_materials=[{"app_ids": ["a3"], "experiences": ["a1"]}],
            sessions=[{"app_ids": ["a4"], "experience_ids": ["a5"]}],
        )
        assert resolve_app_ids(program) == {"a1", "a2", "a3", "a4", "a5"}

    def test_missing_collections_are_empty(self):
        assert resolve_app_ids({"id": "p1"}) == set()
        assert resolve_app_ids({"id": "p1", "sessions": None, "teaching_materials": [{"app_ids": None}]}) == set()

    def test_skips_falsy_ids_and_non_dict_items(self):
        program = {
            "id": "p1",
            "teaching_materials": [{"app_ids": ["a1", "", None]}, "garbage"],
        }
        assert resolve_app_ids(program) == {"a1"}

    def test_is_idempotent(self):
        program = Program(id="p1", sessions=[{"app_ids": ["b", "a"], "experience_ids": ["c"]}])
        assert resolve_app_ids(program) == resolve_app_ids(program)

    def test_dict_and_entity_agree(self):
        raw = {"id": "p1", "enrichment_materials": [{"experiences": ["x"]}], "sessions": [{"app_ids": ["y"]}]}
        assert resolve_app_ids(raw) == resolve_app_ids(Program.from_dict(raw)) == {"x", "y"}


class TestDisplayTitle:
    def test_fallback_order(self):
        assert display_title({"id": "p", "title": "T", "course_topic": "C", "subject": "S"}) == "T"
        assert display_title({"id": "p", "title": "  ", "course_topic": "C", "subject": "S"}) == "C"
        assert display_title({"id": "p", "subject": "S"}) == "S"
        assert display_title({"id": "p"}) == "p"

    def test_none_uses_default(self):
        assert display_title(None, default="unknown") == "unknown"

    def test_property_on_entity(self):
        assert Program(id="p", course_topic="Astronomy").display_title == "Astronomy"

    def test_from_dict_reads_school_id(self):
        assert Program.from_dict({"id": "p", "school_id": "s1"}).institution_id == "s1"


class TestSelectionFor:
    def test_explicit_assignment_wins(self):
        program = Program(
            id="p",
            assigned_device_ids=["d2", "d1", "d2"],
            teaching_materials=[{"app_ids": ["a1"]}],
        )
        selection = selection_for(program)
        assert isinstance(selection, ExplicitSelection)
        assert selection.kind == "explicit"
        assert selection.device_ids == ("d2", "d1")

    def test_derived_when_no_assignment(self):
        selection = selection_for({"id": "p", "sessions": [{"app_ids": ["a1"]}]})
        assert isinstance(selection, DerivedSelection)
        assert selection.kind == "derived"
        assert selection.app_ids == frozenset({"a1"})

    def test_empty_assignment_is_derived(self):
        assert isinstance(selection_for({"id": "p", "assigned_device_ids": []}), DerivedSelection)
