from __future__ import annotations

import logging
from collections import abc
from inspect import isabstract
from typing import Any, Optional, get_origin

from synmap.errors import MappingConfigurationError
from synmap.introspection import MemberDescriptor, default_value, is_value_kind
from synmap.plan import Assignment, CollectionBuilder, Operation, Strategy
from synmap.registry import ConverterRegistry

logger = logging.getLogger(__name__)

_LIST_ORIGINS = (
    list,
    abc.Iterable,
    abc.Collection,
    abc.Reversible,
    abc.Sequence,
    abc.MutableSequence,
)
_SET_ORIGINS = (set, abc.Set, abc.MutableSet)


def _as_is(collection: Any) -> Any:
    return collection


def collection_builder(member: MemberDescriptor) -> CollectionBuilder:
    origin = get_origin(member.underlying_type)
    if origin in _LIST_ORIGINS:
        return CollectionBuilder(list, _as_is)
    if origin in _SET_ORIGINS:
        return CollectionBuilder(set, _as_is)
    if origin is tuple:
        return CollectionBuilder(list, tuple)
    if origin is frozenset:
        return CollectionBuilder(set, frozenset)
    if (
        isinstance(origin, type)
        and not isabstract(origin)
        and (hasattr(origin, "append") or hasattr(origin, "add"))
    ):
        return CollectionBuilder(origin, _as_is)
    raise MappingConfigurationError(
        f"Can't create a {member.declared_type!r} collection for member {member.name}."
    )


class StrategyResolver:
    """Pick the assignment for one matched pair of members.

    The branch is chosen by the shape of the source member, in this order:
    reference identity, reference mismatch, value kinds with matching
    nullability, value kinds with mismatched nullability. Every branch that
    needs a conversion resolves it the same way: a registered custom converter,
    then an element-wise collection copy, then the generic runtime converter.
    """

    def __init__(self, registry: ConverterRegistry) -> None:
        self.registry = registry

    def resolve(
        self, source: MemberDescriptor, target: MemberDescriptor
    ) -> Optional[Assignment]:
        if not source.is_value_kind:
            if source.key_type == target.key_type:
                return Assignment(
                    source, target, Strategy.REFERENCE_IDENTITY, Operation.ASSIGN
                )
            return self._resolve_conversion(source, target, Strategy.REFERENCE_MISMATCH)

        if source.is_nullable == target.is_nullable:
            if source.key_type == target.key_type:
                return Assignment(
                    source, target, Strategy.MATCHING_NULLABILITY, Operation.ASSIGN
                )
            return self._resolve_conversion(
                source, target, Strategy.MATCHING_NULLABILITY
            )

        return self._resolve_mismatched_nullability(source, target)

    # region Private methods

    def _resolve_mismatched_nullability(
        self, source: MemberDescriptor, target: MemberDescriptor
    ) -> Optional[Assignment]:
        if source.underlying_type != target.underlying_type:
            return self._resolve_conversion(
                source, target, Strategy.MISMATCHED_NULLABILITY
            )
        if source.is_nullable:
            return Assignment(
                source,
                target,
                Strategy.MISMATCHED_NULLABILITY,
                Operation.UNWRAP_OR_DEFAULT,
                default=default_value(target.declared_type),
            )
        return Assignment(
            source, target, Strategy.MISMATCHED_NULLABILITY, Operation.ASSIGN
        )

    def _resolve_conversion(
        self, source: MemberDescriptor, target: MemberDescriptor, strategy: Strategy
    ) -> Optional[Assignment]:
        rule = self.registry.lookup(source.key_type, target.key_type)
        if rule is not None:
            return Assignment(source, target, strategy, Operation.CUSTOM, convert=rule)
        if source.is_collection and target.is_collection:
            return self._resolve_collection(source, target)
        return Assignment(
            source,
            target,
            strategy,
            Operation.CONVERT,
            default=default_value(target.declared_type),
        )

    def _resolve_collection(
        self, source: MemberDescriptor, target: MemberDescriptor
    ) -> Optional[Assignment]:
        if len(source.type_args) > 1 or len(target.type_args) > 1:
            raise MappingConfigurationError(
                f"Can't map member {source.name} from {source.declared_type!r} to "
                f"{target.declared_type!r}: only collections with a single element "
                "type are supported, register a custom converter for this pair."
            )
        if not (source.is_generic_collection and target.is_generic_collection):
            logger.debug(
                "Skipping member %s: %r -> %r has no element type to convert",
                source.name,
                source.declared_type,
                target.declared_type,
            )
            return None

        (element_type,) = target.type_args
        (source_element_type,) = source.type_args
        copies_elements = not is_value_kind(source_element_type)
        if not copies_elements:
            logger.debug(
                "Member %s holds value kinds (%r), its elements are not copied",
                source.name,
                source_element_type,
            )
        return Assignment(
            source,
            target,
            Strategy.COLLECTION,
            Operation.COPY_COLLECTION,
            element_type=element_type,
            builder=collection_builder(target),
            copies_elements=copies_elements,
        )

    # endregion
