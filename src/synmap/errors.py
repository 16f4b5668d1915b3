from __future__ import annotations


class MapperError(Exception):
    """Base class for every error raised by synmap."""


class MappingConfigurationError(MapperError, TypeError):
    """A mapper or converter cannot be built for the requested types."""


class NullArgumentError(MapperError, ValueError):
    """A compiled mapper or collection copy was called with a missing argument."""


class ConversionError(MapperError, ValueError):
    def __init__(self, value, target_type, reason: str = "") -> None:
        self.value = value
        self.target_type = target_type
        target_name = getattr(target_type, "__name__", repr(target_type))
        message = f"Can't convert {value!r} ({type(value).__name__}) to {target_name}"
        super().__init__(f"{message}: {reason}" if reason else f"{message}.")
