from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from inspect import signature
from typing import Any, Callable, Dict, NamedTuple, Optional, get_type_hints

from synmap.errors import MappingConfigurationError
from synmap.introspection import key_type

logger = logging.getLogger(__name__)

ConvertFunction = Callable[[Any], Any]


class ConversionKey(NamedTuple):
    source_type: Any
    target_type: Any

    @classmethod
    def of(cls, source_type: Any, target_type: Any) -> "ConversionKey":
        return cls(key_type(source_type), key_type(target_type))

    def __str__(self) -> str:
        return f"{_type_name(self.source_type)} -> {_type_name(self.target_type)}"


@dataclass(frozen=True)
class ConversionRule:
    key: ConversionKey
    convert: ConvertFunction


class ConverterRegistry:
    """Custom conversion functions keyed by an ordered (source, target) type pair.

    Lookups are exact: a rule for ``(str, Decimal)`` is never used for
    ``(Decimal, str)`` or for subclasses of either type. Registering a rule for a
    key that already has one replaces it.
    """

    def __init__(self) -> None:
        self._rules: Dict[ConversionKey, ConversionRule] = {}
        self._lock = threading.Lock()

    def register(
        self, source_type: Any, target_type: Any, convert_fn: ConvertFunction
    ) -> "ConverterRegistry":
        if convert_fn is None or not callable(convert_fn):
            raise MappingConfigurationError(
                f"Custom converter for {_type_name(source_type)} -> "
                f"{_type_name(target_type)} must be a callable, got {convert_fn!r}."
            )
        key = ConversionKey.of(source_type, target_type)
        with self._lock:
            # Readers keep using the previous dict until the swap.
            rules = dict(self._rules)
            rules[key] = ConversionRule(key, convert_fn)
            self._rules = rules
        logger.debug("Registered custom converter %s", key)
        return self

    def register_function(self, convert_fn: ConvertFunction) -> "ConverterRegistry":
        """Register ``convert_fn`` under the types of its annotations.

        The source type is the annotation of the first parameter and the target
        type is the return annotation.
        """
        if convert_fn is None or not callable(convert_fn):
            raise MappingConfigurationError(
                f"Custom converter must be a callable, got {convert_fn!r}."
            )
        hints = get_type_hints(convert_fn)
        params = list(signature(convert_fn).parameters)
        if not params or params[0] not in hints or "return" not in hints:
            raise MappingConfigurationError(
                f"Can't infer the conversion types of {convert_fn!r}: annotate its "
                "first parameter and its return value."
            )
        return self.register(hints[params[0]], hints["return"], convert_fn)

    def lookup(self, source_type: Any, target_type: Any) -> Optional[ConvertFunction]:
        rule = self._rules.get(ConversionKey.of(source_type, target_type))
        return rule.convert if rule is not None else None

    def __contains__(self, key: Any) -> bool:
        return ConversionKey.of(*key) in self._rules

    def __len__(self) -> int:
        return len(self._rules)


def _type_name(tp: Any) -> str:
    return tp.__name__ if isinstance(tp, type) else repr(tp)
