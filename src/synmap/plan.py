"""Mapping plan data classes.

A plan is the frozen description of everything a compiled mapper does for one
(source type, target type) pair. It is produced by ``Mapper.build_plan`` and
consumed by the compiler in ``synmap.mapper``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Tuple, Type, Union

from synmap.introspection import MemberDescriptor


class Strategy(Enum):
    REFERENCE_IDENTITY = "reference_identity"
    REFERENCE_MISMATCH = "reference_mismatch"
    MATCHING_NULLABILITY = "matching_nullability"
    MISMATCHED_NULLABILITY = "mismatched_nullability"
    COLLECTION = "collection"


class Operation(Enum):
    ASSIGN = "assign"
    UNWRAP_OR_DEFAULT = "unwrap_or_default"
    CUSTOM = "custom"
    CONVERT = "convert"
    COPY_COLLECTION = "copy_collection"


@dataclass(frozen=True)
class CollectionBuilder:
    """How to build the target collection of a collection copy."""

    create: Callable[[], Any]
    finish: Callable[[Any], Any]


@dataclass(frozen=True)
class NullGuard:
    source_type: Type
    target_type: Optional[Type] = None

    @property
    def message(self) -> str:
        if self.target_type is None:
            return f"The source ({_qualified_name(self.source_type)}) instance cannot be None."
        return (
            f"The source ({_qualified_name(self.source_type)}) and target "
            f"({_qualified_name(self.target_type)}) instances cannot be None."
        )


@dataclass(frozen=True)
class Instantiation:
    target_type: Type
    create: Callable[[], Any]


@dataclass(frozen=True)
class Assignment:
    source: MemberDescriptor
    target: MemberDescriptor
    strategy: Strategy
    operation: Operation
    convert: Optional[Callable[[Any], Any]] = None
    default: Any = None
    element_type: Any = None
    builder: Optional[CollectionBuilder] = None
    # False when the source holds value kinds: the target collection stays empty.
    copies_elements: bool = True

    def __str__(self) -> str:
        return (
            f"{self.source.name} -> {self.target.name} "
            f"[{self.strategy.value}/{self.operation.value}]"
        )


@dataclass(frozen=True)
class ReturnTarget:
    target_type: Type


Fragment = Union[NullGuard, Instantiation, Assignment, ReturnTarget]


@dataclass(frozen=True)
class MappingPlan:
    source_type: Type
    target_type: Type
    null_guard: NullGuard
    assignments: Tuple[Assignment, ...]
    instantiation: Optional[Instantiation] = None

    @property
    def creates_target(self) -> bool:
        return self.instantiation is not None

    @property
    def fragments(self) -> Iterator[Fragment]:
        yield self.null_guard
        if self.instantiation is not None:
            yield self.instantiation
        yield from self.assignments
        if self.instantiation is not None:
            yield ReturnTarget(self.target_type)


def _qualified_name(cls: Type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"
