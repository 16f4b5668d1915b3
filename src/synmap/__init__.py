from synmap.conversion import convert, convert_collection
from synmap.errors import (
    ConversionError,
    MapperError,
    MappingConfigurationError,
    NullArgumentError,
)
from synmap.introspection import MemberDescriptor, get_adapter
from synmap.mapper import Mapper, compile_factory, compile_mutator
from synmap.plan import MappingPlan, Operation, Strategy
from synmap.registry import ConversionKey, ConverterRegistry

__all__ = [
    "ConversionError",
    "ConversionKey",
    "ConverterRegistry",
    "Mapper",
    "MapperError",
    "MappingConfigurationError",
    "MappingPlan",
    "MemberDescriptor",
    "NullArgumentError",
    "Operation",
    "Strategy",
    "compile_factory",
    "compile_mutator",
    "convert",
    "convert_collection",
    "get_adapter",
]
