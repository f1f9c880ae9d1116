"""Tests for patchbay.model.properties — numeric property addressing and merge."""

from __future__ import annotations

import pytest

from patchbay._errors import BindingError
from patchbay.model.objects import Bridge, Circle, SequenceBlock, Slider, Switch
from patchbay.model.properties import (
    get_property,
    is_number,
    merge,
    numeric_properties,
    property_accessors,
    validate_binding,
)


class TestIsNumber:
    def test_int_and_float(self) -> None:
        assert is_number(1)
        assert is_number(1.5)

    def test_bool_is_not_a_number(self) -> None:
        assert not is_number(True)

    def test_strings_are_not_numbers(self) -> None:
        assert not is_number("1")


class TestNumericProperties:
    def test_circle(self) -> None:
        assert numeric_properties(Circle(id="c")) == ("diameter", "stroke_width", "x", "y")

    def test_slider_excludes_window_and_flags(self) -> None:
        assert numeric_properties(Slider(id="s")) == ("max", "min", "value", "x", "y")

    def test_switch(self) -> None:
        assert numeric_properties(Switch(id="sw")) == ("current_state", "x", "y")

    def test_view_never_listed(self) -> None:
        for obj in (Circle(id="c"), SequenceBlock(id="q"), Bridge(id="b")):
            assert "view" not in numeric_properties(obj)

    def test_numeric_extras_included(self) -> None:
        circle = Circle(id="c", extra={"glow": 2, "label": "hi"})
        names = numeric_properties(circle)
        assert "glow" in names
        assert "label" not in names

    def test_non_numeric_value_drops_name(self) -> None:
        # Writes are never type-checked; a string value hides the property.
        slider = Slider(id="s", value="loud")  # type: ignore[arg-type]
        assert "value" not in numeric_properties(slider)

    def test_sorted(self) -> None:
        names = numeric_properties(SequenceBlock(id="q"))
        assert list(names) == sorted(names)


class TestPropertyAccessors:
    def test_keys_match_numeric_properties(self) -> None:
        circle = Circle(id="c")
        assert tuple(property_accessors(circle)) == numeric_properties(circle)

    def test_get_and_set(self) -> None:
        circle = Circle(id="c", diameter=40)
        accessor = property_accessors(circle)["diameter"]

        assert accessor.get(circle) == 40
        updated = accessor.set(circle, 80)
        assert updated.diameter == 80  # type: ignore[attr-defined]
        assert circle.diameter == 40

    def test_extra_accessor(self) -> None:
        circle = Circle(id="c", extra={"glow": 2})
        accessor = property_accessors(circle)["glow"]
        assert accessor.get(circle) == 2
        assert accessor.set(circle, 5).extra == {"glow": 5}


class TestValidateBinding:
    def test_legal_name(self) -> None:
        validate_binding(Circle(id="c"), "diameter")

    def test_illegal_name_lists_legal_ones(self) -> None:
        with pytest.raises(BindingError, match="diameter"):
            validate_binding(Circle(id="c"), "fill_color")

    def test_missing_target_is_allowed(self) -> None:
        validate_binding(None, "anything")

    def test_empty_name_is_allowed(self) -> None:
        validate_binding(Circle(id="c"), "")


class TestGetProperty:
    def test_declared(self) -> None:
        assert get_property(Circle(id="c", diameter=3), "diameter") == 3

    def test_extra(self) -> None:
        assert get_property(Circle(id="c", extra={"glow": 1}), "glow") == 1

    def test_default(self) -> None:
        assert get_property(Circle(id="c"), "nope", 7) == 7


class TestMerge:
    def test_returns_new_object(self) -> None:
        circle = Circle(id="c")
        updated = merge(circle, {"diameter": 5})
        assert updated is not circle
        assert updated.diameter == 5  # type: ignore[attr-defined]
        assert circle.diameter == 100

    def test_id_cannot_change(self) -> None:
        assert merge(Circle(id="c"), {"id": "other"}).id == "c"

    def test_type_tag_ignored(self) -> None:
        updated = merge(Circle(id="c"), {"type": "slider"})
        assert isinstance(updated, Circle)
        assert "type" not in updated.extra

    def test_unknown_keys_into_extra(self) -> None:
        circle = Circle(id="c", extra={"a": 1})
        updated = merge(circle, {"b": 2})
        assert updated.extra == {"a": 1, "b": 2}
        assert circle.extra == {"a": 1}

    def test_retarget_clears_property(self) -> None:
        slider = Slider(id="s", target_id="c1", target_property="diameter")
        updated = merge(slider, {"target_id": "c2"})
        assert updated.target_property == ""  # type: ignore[attr-defined]

    def test_retarget_with_property_keeps_it(self) -> None:
        switch = Switch(id="sw", target_id="c1", target_property="diameter")
        updated = merge(switch, {"target_id": "c2", "target_property": "x"})
        assert updated.target_property == "x"  # type: ignore[attr-defined]

    def test_same_target_keeps_property(self) -> None:
        slider = Slider(id="s", target_id="c1", target_property="diameter")
        updated = merge(slider, {"target_id": "c1"})
        assert updated.target_property == "diameter"  # type: ignore[attr-defined]

    def test_self_inheritance_normalized(self) -> None:
        updated = merge(Slider(id="s"), {"inherited_slider_id": "s"})
        assert updated.inherited_slider_id is None  # type: ignore[attr-defined]
