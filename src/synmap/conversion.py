"""Runtime value conversion used by compiled mappers.

``convert`` changes a value into a target type, either strictly (raising
``ConversionError``) or with a fallback default that is returned whenever the
conversion fails. ``convert_collection`` copies the elements of one collection
into another, converting each element on the way.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, Type, TypeVar, get_origin

from pydantic import PydanticUserError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from synmap.errors import ConversionError, NullArgumentError
from synmap.introspection import is_plain_class, unwrap_optional

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()

_BOOLEAN_STRINGS = {"true": True, "false": False}


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        text = value.strip().lower()
        if text not in _BOOLEAN_STRINGS:
            raise ValueError(f"String {value!r} is not a valid boolean")
        return _BOOLEAN_STRINGS[text]
    if isinstance(value, datetime):
        raise TypeError("datetime has no boolean value")
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value.strip())
    if isinstance(value, (float, Decimal)):
        # round() is half-to-even for both float and Decimal.
        return int(round(value))
    if isinstance(value, datetime):
        raise TypeError("datetime has no integer value")
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, datetime):
        raise TypeError("datetime has no float value")
    return float(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, str):
        return Decimal(value.strip())
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, datetime):
        raise TypeError("datetime has no decimal value")
    return Decimal(value)


def _to_datetime(value: Any) -> datetime:
    if not isinstance(value, str):
        raise TypeError(f"{type(value).__name__} can't be read as a datetime")
    return datetime.fromisoformat(value.strip())


_PRIMITIVES: Dict[type, Callable[[Any], Any]] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    Decimal: _to_decimal,
    str: str,
    datetime: _to_datetime,
}


def _is_primitive(tp: Any) -> bool:
    return (
        is_plain_class(tp)
        and issubclass(tp, tuple(_PRIMITIVES))
        and not issubclass(tp, Enum)
    )


def _primitive_converter(destination: type) -> Callable[[Any], Any]:
    for primitive, converter in _PRIMITIVES.items():
        if issubclass(destination, primitive):
            return converter
    raise KeyError(destination)


@lru_cache(maxsize=None)
def _type_adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _already_converted(value: Any, destination: Any) -> bool:
    if get_origin(destination) is not None or not isinstance(destination, type):
        return False
    if isinstance(value, bool) and destination is int:
        return False
    return isinstance(value, destination)


def _convert_with_descriptors(value: Any, destination: Any) -> Any:
    try:
        return _type_adapter(destination).validate_python(value)
    except (ValidationError, PydanticUserError) as e:
        destination_error = e

    # Let the origin type describe itself, then read that into the destination.
    try:
        dumped = _type_adapter(type(value)).dump_python(value, mode="json")
        if _already_converted(dumped, destination):
            return dumped
        return _type_adapter(destination).validate_python(dumped)
    except (ValidationError, PydanticSerializationError, PydanticUserError) as e:
        raise ConversionError(value, destination, str(e)) from destination_error


def _convert_type(value: Any, target_type: Any) -> Any:
    destination = unwrap_optional(target_type)
    if destination is Any or destination is object:
        return value
    if _already_converted(value, destination):
        return value
    if _is_primitive(type(value)) and _is_primitive(destination):
        try:
            return _primitive_converter(destination)(value)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise ConversionError(value, destination, str(e)) from e
    return _convert_with_descriptors(value, destination)


def convert(value: Any, target_type: Type[T], default: T = _MISSING) -> T:
    """Convert ``value`` to ``target_type``.

    Without ``default`` the conversion is strict: ``None`` or a value that
    can't be converted raises ``ConversionError``. With ``default`` the
    conversion never raises; ``default`` is returned instead.
    """
    if default is _MISSING:
        if value is None:
            raise ConversionError(value, target_type, "value must not be None")
        return _convert_type(value, target_type)

    if value is None:
        return default
    try:
        return _convert_type(value, target_type)
    except Exception as e:
        logger.debug("Conversion failed, using default %r: %s", default, e)
        return default


def convert_collection(
    source: Iterable[Any], target: Any, element_type: Type[T]
) -> None:
    """Append every non-None element of ``source`` to ``target`` as ``element_type``."""
    items = list(source) if source is not None else []
    if not items:
        return
    if target is None:
        element_name = getattr(element_type, "__name__", repr(element_type))
        raise NullArgumentError(f"Collection of {element_name} cannot be None.")

    add = target.append if hasattr(target, "append") else target.add
    for item in items:
        if item is None:
            continue
        add(convert(item, element_type))
