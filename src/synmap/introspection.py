from __future__ import annotations

import dataclasses
import datetime
import types
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from inspect import Parameter, isclass, isfunction, signature
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Optional,
    Set,
    Tuple,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
from uuid import UUID

from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from synmap.errors import MappingConfigurationError

# Types copied by value. Everything else, str included, is a reference kind.
VALUE_KINDS = (
    bool,
    int,
    float,
    complex,
    Decimal,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    UUID,
    Enum,
)

# Iterable, but never treated as collections.
NON_COLLECTIONS = (str, bytes, bytearray, BaseModel)

# Order matters: bool before int, datetime before date.
_ZERO_VALUES = (
    (bool, False),
    (int, 0),
    (float, 0.0),
    (complex, 0j),
    (Decimal, Decimal(0)),
    (datetime.datetime, datetime.datetime.min),
    (datetime.date, datetime.date.min),
    (datetime.time, datetime.time()),
    (datetime.timedelta, datetime.timedelta(0)),
    (UUID, UUID(int=0)),
)

_UNION_TYPES = (Union, types.UnionType)
_NONE_TYPE = type(None)


@dataclass(frozen=True)
class MemberDescriptor:
    name: str
    declared_type: Any
    underlying_type: Any
    is_value_kind: bool
    is_nullable: bool
    is_collection: bool
    type_args: Tuple[Any, ...] = ()
    readable: bool = True
    writable: bool = True

    @property
    def key_type(self) -> Any:
        return key_type(self.declared_type)

    @property
    def is_generic_collection(self) -> bool:
        return self.is_collection and bool(self.type_args)

    @property
    def is_collection_of_scalar(self) -> bool:
        if not self.is_generic_collection or len(self.type_args) != 1:
            return False
        (element_type,) = self.type_args
        return is_value_kind(element_type) or element_type in (str, bytes)


def is_optional(tp: Any) -> bool:
    return get_origin(tp) in _UNION_TYPES and _NONE_TYPE in get_args(tp)


def unwrap_optional(tp: Any) -> Any:
    """Return ``X`` for ``Optional[X]``, anything else unchanged."""
    if get_origin(tp) in _UNION_TYPES:
        args = get_args(tp)
        inner = [arg for arg in args if arg is not _NONE_TYPE]
        if len(inner) == 1 and len(inner) < len(args):
            return inner[0]
    return tp


def normalize_type(tp: Any) -> Any:
    underlying = unwrap_optional(tp)
    if underlying is not tp:
        return Optional[underlying]
    return tp


def key_type(tp: Any) -> Any:
    """Type used to compare members and to look up converters.

    Optional[str] and str are the same reference kind, while Optional[int] and
    int are different value kinds.
    """
    if is_value_kind(tp):
        return normalize_type(tp)
    return unwrap_optional(tp)


def is_plain_class(tp: Any) -> bool:
    return isinstance(tp, type) and get_origin(tp) is None


def is_value_kind(tp: Any) -> bool:
    underlying = unwrap_optional(tp)
    return is_plain_class(underlying) and issubclass(underlying, VALUE_KINDS)


def collection_shape(tp: Any) -> Tuple[bool, Tuple[Any, ...]]:
    """Tell whether ``tp`` is a collection and return its type arguments."""
    origin = get_origin(tp) or tp
    if (
        not isinstance(origin, type)
        or issubclass(origin, NON_COLLECTIONS)
        or not issubclass(origin, Iterable)
    ):
        return False, ()
    args = get_args(tp)
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        args = args[:1]
    return True, args


def default_value(tp: Any) -> Any:
    if is_optional(tp) or not is_value_kind(tp):
        return None
    if issubclass(tp, Enum):
        return next(iter(tp), None)
    for kind, zero in _ZERO_VALUES:
        if issubclass(tp, kind):
            return zero
    return None


def describe_member(
    name: str, annotation: Any, readable: bool = True, writable: bool = True
) -> MemberDescriptor:
    underlying = unwrap_optional(annotation)
    value_kind = is_value_kind(underlying)
    is_collection, type_args = collection_shape(underlying)
    return MemberDescriptor(
        name=name,
        declared_type=normalize_type(annotation),
        underlying_type=underlying,
        is_value_kind=value_kind,
        is_nullable=value_kind and is_optional(annotation),
        is_collection=is_collection,
        type_args=type_args,
        readable=readable,
        writable=writable,
    )


class PopoAdapter:
    def get_properties(self, cls: Type) -> List[MemberDescriptor]:
        return [
            describe_member(
                name,
                self._get_property_type(prop),
                readable=prop.fget is not None,
                writable=prop.fset is not None,
            )
            for name, prop in self.get_public_properties(cls).items()
        ]

    def get_fields(self, cls: Type) -> List[MemberDescriptor]:
        shadowed = set(self.get_public_properties(cls))
        writable = not self._is_frozen(cls)
        return [
            describe_member(name, annotation, writable=writable)
            for name, annotation in self.get_field_annotations(cls).items()
            if not name.startswith("_") and name not in shadowed
        ]

    def get_public_properties(self, cls: Type) -> Dict[str, property]:
        properties: Dict[str, property] = {}
        for klass in reversed(self._get_member_classes(cls)):
            for name, value in vars(klass).items():
                if isinstance(value, property) and not name.startswith("_"):
                    properties[name] = value
                elif name in properties:
                    del properties[name]
        return properties

    def get_field_annotations(self, cls: Type) -> Dict[str, Any]:
        annotations = {
            name: tp
            for name, tp in self._get_type_hints(cls).items()
            if get_origin(tp) is not ClassVar
        }
        # Attributes assigned in __init__ are only known through its signature.
        if isfunction(cls.__init__):
            init_hints = self._get_type_hints(cls.__init__)
            stored = self._get_init_attribute_names(cls)
            for name, _ in self.get_init_params(cls):
                if name in init_hints and name in stored and name not in annotations:
                    annotations[name] = init_hints[name]
        return annotations

    def get_init_params(self, cls: Type) -> List[Tuple[str, Parameter]]:
        return [
            (name, param)
            for name, param in signature(cls.__init__).parameters.items()
            if name != "self"
            and param.kind not in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)
        ]

    def get_required_init_params(self, cls: Type) -> Set[str]:
        return {
            name
            for name, param in self.get_init_params(cls)
            if param.default is Parameter.empty
        }

    def create_instance(self, cls: Type[Any]) -> Any:
        return cls()

    # region Private methods

    def _get_member_classes(self, cls: Type) -> List[Type]:
        return [klass for klass in cls.__mro__ if klass is not object]

    @staticmethod
    def _get_init_attribute_names(cls: Type) -> Set[str]:
        # Parameters only count as fields when __init__ stores an attribute of
        # the same name, or a slot is declared for it.
        names = set(cls.__init__.__code__.co_names)
        for klass in cls.__mro__:
            slots = vars(klass).get("__slots__", ())
            names.update((slots,) if isinstance(slots, str) else slots)
        return names

    def _get_property_type(self, prop: property) -> Any:
        if prop.fget is not None:
            return self._get_type_hints(prop.fget).get("return", Any)
        hints = self._get_type_hints(prop.fset)
        return next((tp for name, tp in hints.items() if name != "return"), Any)

    def _get_type_hints(self, obj: Any) -> Dict[str, Any]:
        try:
            return get_type_hints(obj)
        except NameError as e:
            owner = getattr(obj, "__qualname__", repr(obj))
            raise MappingConfigurationError(
                f"Can't resolve type annotations of {owner}: {e}"
            ) from e

    @staticmethod
    def _is_frozen(cls: Type) -> bool:
        return dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen

    # endregion


class PydanticModelAdapter(PopoAdapter):
    def get_fields(self, cls: Type[BaseModel]) -> List[MemberDescriptor]:
        frozen_model = bool(cls.model_config.get("frozen", False))
        shadowed = set(self.get_public_properties(cls))
        return [
            describe_member(
                name, field.annotation, writable=not (frozen_model or field.frozen)
            )
            for name, field in cls.model_fields.items()
            if not name.startswith("_") and name not in shadowed
        ]

    def get_required_init_params(self, cls: Type[BaseModel]) -> Set[str]:
        return {
            field.alias or name
            for name, field in cls.model_fields.items()
            if not self._field_has_default(field)
        }

    def create_instance(self, cls: Type[BaseModel]) -> BaseModel:
        return cls.model_construct()

    def _get_member_classes(self, cls: Type) -> List[Type]:
        # BaseModel's own properties (model_extra, model_fields_set, ...) are not members.
        return [klass for klass in cls.__mro__ if klass not in BaseModel.__mro__]

    @staticmethod
    def _field_has_default(field_info: FieldInfo) -> bool:
        return (
            field_info.default is not PydanticUndefined
            or field_info.default_factory is not None
        )


def get_adapter(cls: Type) -> PopoAdapter:
    if isclass(cls) and issubclass(cls, BaseModel):
        return PydanticModelAdapter()
    return PopoAdapter()
