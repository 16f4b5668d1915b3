from collections import deque
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID

import pytest

from synmap import ConversionError, NullArgumentError, convert, convert_collection


class Color(Enum):
    RED = "red"
    GREEN = "green"


class Opaque:
    pass


UUID_TEXT = "12345678-1234-5678-1234-567812345678"


class TestStrictConversion:
    """``convert`` without a default."""

    @pytest.mark.parametrize(
        "value,target_type,expected",
        [
            ("42", int, 42),
            (" 42 ", int, 42),
            ("3350.20", Decimal, Decimal("3350.20")),
            ("1.5", float, 1.5),
            ("True", bool, True),
            ("false", bool, False),
            (1, bool, True),
            (0, bool, False),
            (True, int, 1),
            (2.5, int, 2),
            (3.5, int, 4),
            (Decimal("2.5"), int, 2),
            (1.25, Decimal, Decimal("1.25")),
            (Decimal("3350.20"), str, "3350.20"),
            (True, str, "True"),
            ("2025-03-01 10:30:00", datetime, datetime(2025, 3, 1, 10, 30)),
            (datetime(2025, 3, 1, 10, 30), str, "2025-03-01 10:30:00"),
        ],
    )
    def test_primitive_conversions(self, value, target_type, expected):
        result = convert(value, target_type)

        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize(
        "value,target_type,expected",
        [
            (UUID_TEXT, UUID, UUID(UUID_TEXT)),
            (UUID(UUID_TEXT), str, UUID_TEXT),
            ("red", Color, Color.RED),
            (Color.GREEN, str, "green"),
            (["1", "2"], List[int], [1, 2]),
        ],
    )
    def test_type_descriptor_conversions(self, value, target_type, expected):
        assert convert(value, target_type) == expected

    def test_value_of_target_type_is_returned_unchanged(self):
        value = [1, 2]

        assert convert(value, list) is value

    @pytest.mark.parametrize("target_type", [Any, object])
    def test_any_target_returns_value(self, target_type):
        value = Opaque()

        assert convert(value, target_type) is value

    def test_optional_target_converts_to_inner_type(self):
        assert convert("7", Optional[int]) == 7

    def test_none_is_rejected(self):
        with pytest.raises(ConversionError, match="must not be None"):
            convert(None, int)

    @pytest.mark.parametrize(
        "value,target_type",
        [
            ("seven", int),
            ("maybe", bool),
            ("abc", Decimal),
            (datetime(2025, 1, 1), int),
            (5, datetime),
            ("not-a-uuid", UUID),
            (Opaque(), int),
            ("x", Opaque),
        ],
    )
    def test_failures_raise_conversion_error(self, value, target_type):
        with pytest.raises(ConversionError):
            convert(value, target_type)

    def test_conversion_error_is_value_error(self):
        with pytest.raises(ValueError):
            convert("seven", int)


class TestDefaultingConversion:
    """``convert`` with a default never raises."""

    def test_converted_value_is_returned(self):
        assert convert("42", int, 0) == 42

    def test_none_returns_default(self):
        assert convert(None, int, -1) == -1

    @pytest.mark.parametrize(
        "value,target_type,default",
        [
            ("seven", int, 0),
            ("maybe", bool, False),
            ("x", Opaque, None),
            ("not-a-uuid", UUID, UUID(int=0)),
        ],
    )
    def test_failure_returns_default(self, value, target_type, default):
        assert convert(value, target_type, default) == default

    def test_failure_is_logged(self, caplog):
        with caplog.at_level("DEBUG", logger="synmap.conversion"):
            convert("seven", int, 0)

        assert "using default 0" in caplog.text


class TestCollectionConversion:
    """``convert_collection`` copies and converts elements."""

    def test_elements_are_converted_in_order(self):
        target = []

        convert_collection(["3", "1", "2"], target, int)

        assert target == [3, 1, 2]

    def test_none_elements_are_skipped(self):
        target = []

        convert_collection(["1", None, "2"], target, int)

        assert target == [1, 2]

    def test_set_targets_are_filled(self):
        target = set()

        convert_collection([1, 2, 2], target, str)

        assert target == {"1", "2"}

    def test_deque_targets_are_filled(self):
        target = deque()

        convert_collection(("1",), target, int)

        assert list(target) == [1]

    @pytest.mark.parametrize("source", [None, [], ()])
    def test_empty_source_is_a_no_op(self, source):
        convert_collection(source, None, int)

    def test_missing_target_is_rejected(self):
        with pytest.raises(NullArgumentError, match="Collection of int"):
            convert_collection(["1"], None, int)

    def test_element_failures_raise(self):
        with pytest.raises(ConversionError):
            convert_collection(["one"], [], int)
