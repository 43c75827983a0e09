"""Validation registry tests."""

from stackflow.contracts import StackActionPhase, StackChange, ValidationDetail
from stackflow.registry import Validation, ValidationRegistry


def _validation(stack_name: str, change_set_name: str) -> Validation:
    return Validation(
        uri="file:///t.yaml", stack_name=stack_name, change_set_name=change_set_name
    )


def test_add_get_remove():
    registry = ValidationRegistry()
    validation = _validation("app", "cs-1")

    registry.add(validation)
    assert registry.get("app") is validation
    assert "app" in registry
    assert len(registry) == 1

    assert registry.remove("app") is validation
    assert registry.get("app") is None
    assert registry.remove("app") is None


def test_add_replaces_existing_entry_for_stack():
    registry = ValidationRegistry()
    registry.add(_validation("app", "cs-1"))
    registry.add(_validation("app", "cs-2"))

    assert len(registry) == 1
    assert registry.get("app").change_set_name == "cs-2"


def test_remove_leaves_other_stacks():
    registry = ValidationRegistry()
    registry.add(_validation("app", "cs-1"))
    registry.add(_validation("db", "cs-2"))

    registry.remove("app")
    assert registry.stack_names() == ["db"]


def test_entries_are_shared_by_reference():
    registry = ValidationRegistry()
    validation = _validation("app", "cs-1")
    registry.add(validation)

    validation.set_phase(StackActionPhase.VALIDATION_COMPLETE)
    validation.set_changes([StackChange(type="Resource")])
    validation.set_validation_details(
        [ValidationDetail(validation_name="Enhanced Validation", message="bad")]
    )

    stored = registry.get("app")
    assert stored.phase == StackActionPhase.VALIDATION_COMPLETE
    assert stored.changes == [StackChange(type="Resource")]
    assert stored.validation_details[0].message == "bad"
