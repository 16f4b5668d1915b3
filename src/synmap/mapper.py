from __future__ import annotations

import logging
import threading
from functools import partial
from inspect import isclass
from operator import attrgetter
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    NamedTuple,
    NoReturn,
    Optional,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from synmap.conversion import convert, convert_collection
from synmap.errors import MappingConfigurationError, NullArgumentError
from synmap.introspection import MemberDescriptor, PopoAdapter, get_adapter
from synmap.plan import (
    Assignment,
    Instantiation,
    MappingPlan,
    NullGuard,
    Operation,
    ReturnTarget,
)
from synmap.registry import ConverterRegistry, ConvertFunction
from synmap.resolver import StrategyResolver

logger = logging.getLogger(__name__)

TS = TypeVar("TS")
TT = TypeVar("TT")

Mutator = Callable[[TS, TT], None]
Factory = Callable[[TS], TT]
Step = Callable[[Any, Any], None]


class Mapper:
    """Synthesizes mappers that copy same-named members between two types.

    Members are matched by case-insensitive name, properties with properties
    and fields with fields. Every matched pair gets its conversion decided once,
    when the mapper is created; calling the mapper only runs the prepared steps.
    """

    def __init__(self, registry: Optional[ConverterRegistry] = None) -> None:
        self.registry = registry if registry is not None else ConverterRegistry()
        self.resolver = StrategyResolver(self.registry)
        self._mappers: Dict[Tuple[Type, Type, bool], Callable[..., Any]] = {}
        self._lock = threading.Lock()

    def register_custom_converter(
        self, source_type: Any, target_type: Any, convert_fn: ConvertFunction
    ) -> Mapper:
        self.registry.register(source_type, target_type, convert_fn)
        with self._lock:
            self._mappers.clear()
        return self

    def create_mutator(
        self, source_type: Type[TS], target_type: Type[TT]
    ) -> Mutator[TS, TT]:
        return compile_mutator(self.build_plan(source_type, target_type))

    def create_factory(
        self, source_type: Type[TS], target_type: Type[TT]
    ) -> Factory[TS, TT]:
        return compile_factory(
            self.build_plan(source_type, target_type, creates_target=True)
        )

    def build_plan(
        self, source_type: Type[TS], target_type: Type[TT], creates_target: bool = False
    ) -> MappingPlan:
        self._guard_is_class(source_type)
        self._guard_is_class(target_type)
        source_adapter = get_adapter(source_type)
        target_adapter = get_adapter(target_type)

        instantiation = None
        if creates_target:
            self._guard_default_constructible(target_type, target_adapter)
            instantiation = Instantiation(
                target_type, partial(target_adapter.create_instance, target_type)
            )

        matched: Dict[str, MemberDescriptor] = {}
        assignments: List[Assignment] = []
        for sources, targets in (
            (
                source_adapter.get_properties(source_type),
                target_adapter.get_properties(target_type),
            ),
            (
                source_adapter.get_fields(source_type),
                target_adapter.get_fields(target_type),
            ),
        ):
            for source, target in self._match_members(sources, targets):
                self._guard_single_assignment(
                    source, target, matched, source_type, target_type
                )
                assignment = self.resolver.resolve(source, target)
                if assignment is not None:
                    assignments.append(assignment)

        null_guard = NullGuard(source_type, None if creates_target else target_type)
        plan = MappingPlan(
            source_type, target_type, null_guard, tuple(assignments), instantiation
        )
        logger.debug(
            "Planned %s -> %s: %s",
            source_type.__name__,
            target_type.__name__,
            ", ".join(str(assignment) for assignment in assignments) or "no members",
        )
        return plan

    def map(self, source: TS, target: Union[TT, Type[TT]]) -> TT:
        """Map source object to target.

        Args:
            source: Object to map from
            target: Type to create and map to, or an existing instance to update
        """
        target_is_type = isclass(target)
        if source is None or target is None:
            raise NullArgumentError(
                f"Source and target cannot be None, got {source!r} and {target!r}."
            )
        target_type = target if target_is_type else type(target)
        mapper = self._get_mapper(type(source), target_type, target_is_type)
        if target_is_type:
            return mapper(source)
        mapper(source, target)
        return target

    # region Private methods
    # These methods are not intended to be used outside of this class.

    def _get_mapper(
        self, source_type: Type, target_type: Type, creates_target: bool
    ) -> Callable[..., Any]:
        key = (source_type, target_type, creates_target)
        mapper = self._mappers.get(key)
        if mapper is None:
            mapper = (
                self.create_factory(source_type, target_type)
                if creates_target
                else self.create_mutator(source_type, target_type)
            )
            with self._lock:
                mapper = self._mappers.setdefault(key, mapper)
        return mapper

    @staticmethod
    def _match_members(
        sources: List[MemberDescriptor], targets: List[MemberDescriptor]
    ) -> Iterator[Tuple[MemberDescriptor, MemberDescriptor]]:
        for source in sources:
            name = source.name.casefold()
            for target in targets:
                if (
                    name == target.name.casefold()
                    and source.readable
                    and target.writable
                ):
                    yield source, target
                    # first match wins
                    break

    def _guard_is_class(self, cls: Any) -> None:
        if not isclass(cls):
            raise MappingConfigurationError(
                f"Expected a class, got {type(cls).__name__}"
            )

    def _guard_default_constructible(
        self, target_type: Type[TT], adapter: PopoAdapter
    ) -> None:
        required = adapter.get_required_init_params(target_type)
        if required:
            self._raise_required_params_error(target_type, required)

    def _guard_single_assignment(
        self,
        source: MemberDescriptor,
        target: MemberDescriptor,
        matched: Dict[str, MemberDescriptor],
        source_type: Type,
        target_type: Type,
    ) -> None:
        previous = matched.setdefault(target.name, source)
        if previous is not source:
            raise MappingConfigurationError(
                f"Members {previous.name} and {source.name} of {source_type.__name__} "
                f"both map to {target_type.__name__}.{target.name}."
            )

    def _raise_required_params_error(
        self, target_type: Type[TT], required: Set[str]
    ) -> NoReturn:
        if len(required) == 1:
            raise MappingConfigurationError(
                f"{target_type.__name__} requires argument {required.pop()} "
                "and can't be created by a mapper."
            )
        sorted_required = sorted(required)
        names = f"{', '.join(sorted_required[:-1])} and {sorted_required[-1]}"
        raise MappingConfigurationError(
            f"{target_type.__name__} requires arguments {names} "
            "and can't be created by a mapper."
        )

    # endregion


def compile_assignment(assignment: Assignment) -> Step:
    get = attrgetter(assignment.source.name)
    name = assignment.target.name
    operation = assignment.operation

    if operation is Operation.ASSIGN:

        def assign(source: Any, target: Any) -> None:
            setattr(target, name, get(source))

        return assign

    if operation is Operation.UNWRAP_OR_DEFAULT:
        default = assignment.default

        def unwrap_or_default(source: Any, target: Any) -> None:
            value = get(source)
            setattr(target, name, value if value is not None else default)

        return unwrap_or_default

    if operation is Operation.CUSTOM:
        custom = assignment.convert

        def convert_custom(source: Any, target: Any) -> None:
            setattr(target, name, custom(get(source)))

        return convert_custom

    if operation is Operation.CONVERT:
        target_type = assignment.target.declared_type
        default = assignment.default

        def convert_generic(source: Any, target: Any) -> None:
            setattr(target, name, convert(get(source), target_type, default))

        return convert_generic

    if operation is Operation.COPY_COLLECTION:
        create, finish = assignment.builder.create, assignment.builder.finish
        element_type = assignment.element_type

        if not assignment.copies_elements:

            def create_empty_collection(source: Any, target: Any) -> None:
                setattr(target, name, finish(create()))

            return create_empty_collection

        def copy_collection(source: Any, target: Any) -> None:
            collection = create()
            convert_collection(get(source), collection, element_type)
            setattr(target, name, finish(collection))

        return copy_collection

    raise MappingConfigurationError(f"Unsupported operation {operation!r}.")


class CompiledFragments(NamedTuple):
    null_message: str
    create: Optional[Callable[[], Any]]
    steps: Tuple[Step, ...]
    returns_target: bool


def compile_fragments(plan: MappingPlan) -> CompiledFragments:
    null_message = ""
    create = None
    steps: List[Step] = []
    returns_target = False
    for fragment in plan.fragments:
        if isinstance(fragment, NullGuard):
            null_message = fragment.message
        elif isinstance(fragment, Instantiation):
            create = fragment.create
        elif isinstance(fragment, Assignment):
            steps.append(compile_assignment(fragment))
        elif isinstance(fragment, ReturnTarget):
            returns_target = True
        else:
            raise MappingConfigurationError(f"Unsupported plan fragment {fragment!r}.")
    return CompiledFragments(null_message, create, tuple(steps), returns_target)


def compile_mutator(plan: MappingPlan) -> Mutator[Any, Any]:
    compiled = compile_fragments(plan)
    if compiled.create is not None:
        raise MappingConfigurationError(
            f"Plan {plan.source_type.__name__} -> {plan.target_type.__name__} "
            "creates its target, compile it as a factory."
        )
    steps = compiled.steps
    message = compiled.null_message

    def mutator(source: Any, target: Any) -> None:
        if source is None or target is None:
            raise NullArgumentError(message)
        for step in steps:
            step(source, target)

    mutator.__name__ = mutator.__qualname__ = _mapper_name(plan, "map")
    return mutator


def compile_factory(plan: MappingPlan) -> Factory[Any, Any]:
    compiled = compile_fragments(plan)
    if compiled.create is None or not compiled.returns_target:
        raise MappingConfigurationError(
            f"Plan {plan.source_type.__name__} -> {plan.target_type.__name__} "
            "does not create its target."
        )
    steps = compiled.steps
    message = compiled.null_message
    create = compiled.create

    def factory(source: Any) -> Any:
        if source is None:
            raise NullArgumentError(message)
        target = create()
        for step in steps:
            step(source, target)
        return target

    factory.__name__ = factory.__qualname__ = _mapper_name(plan, "create")
    return factory


def _mapper_name(plan: MappingPlan, verb: str) -> str:
    return f"{verb}_{plan.source_type.__name__}_to_{plan.target_type.__name__}"
