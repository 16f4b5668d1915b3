import threading
from decimal import Decimal
from typing import List, Optional

import pytest

from synmap import ConversionKey, ConverterRegistry, MappingConfigurationError


@pytest.fixture(scope="function")
def registry():
    return ConverterRegistry()


class TestRegistration:
    """Tests for registering and looking up custom converters."""

    def test_lookup_returns_registered_converter(self, registry):
        registry.register(str, Decimal, Decimal)

        assert registry.lookup(str, Decimal) is Decimal
        assert (str, Decimal) in registry
        assert len(registry) == 1

    def test_lookup_is_ordered(self, registry):
        registry.register(str, Decimal, Decimal)

        assert registry.lookup(Decimal, str) is None
        assert (Decimal, str) not in registry

    def test_lookup_is_exact(self, registry):
        class Text(str):
            pass

        registry.register(str, Decimal, Decimal)

        assert registry.lookup(Text, Decimal) is None

    def test_registration_overwrites(self, registry):
        registry.register(str, int, int)
        registry.register(str, int, len)

        assert registry.lookup(str, int) is len
        assert len(registry) == 1

    def test_register_is_chainable(self, registry):
        assert registry.register(str, int, int).register(int, str, str) is registry

    @pytest.mark.parametrize("convert_fn", [None, "not callable"])
    def test_register_rejects_non_callables(self, registry, convert_fn):
        with pytest.raises(MappingConfigurationError, match="str -> Decimal"):
            registry.register(str, Decimal, convert_fn)

        assert len(registry) == 0

    def test_optional_spellings_share_a_key(self, registry):
        registry.register(int | None, bool, bool)

        assert registry.lookup(Optional[int], bool) is bool
        assert ConversionKey.of(int | None, bool) == ConversionKey(Optional[int], bool)

    def test_optional_reference_types_share_a_key(self, registry):
        registry.register(Optional[str], int, int)

        assert registry.lookup(str, int) is int
        assert ConversionKey.of(Optional[str], int) == ConversionKey(str, int)

    def test_generic_types_are_keys(self, registry):
        registry.register(List[str], List[int], list)

        assert registry.lookup(List[str], List[int]) is list
        assert registry.lookup(List[int], List[str]) is None

    def test_key_description(self):
        assert str(ConversionKey.of(str, Decimal)) == "str -> Decimal"


class TestFunctionRegistration:
    """Tests for inferring the key from a function's annotations."""

    def test_types_are_inferred(self, registry):
        def parse_price(text: str) -> Decimal:
            return Decimal(text)

        registry.register_function(parse_price)

        assert registry.lookup(str, Decimal) is parse_price

    def test_unannotated_functions_are_rejected(self, registry):
        with pytest.raises(MappingConfigurationError, match="annotate"):
            registry.register_function(lambda text: Decimal(text))

    def test_none_is_rejected(self, registry):
        with pytest.raises(MappingConfigurationError):
            registry.register_function(None)


class TestConcurrentRegistration:
    """Concurrent writers never lose a registration."""

    def test_concurrent_writers(self, registry):
        types = [type(f"Source{index}", (), {}) for index in range(32)]
        barrier = threading.Barrier(len(types))

        def register(source_type):
            barrier.wait()
            registry.register(source_type, str, str)

        threads = [threading.Thread(target=register, args=(t,)) for t in types]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == len(types)
        assert all(registry.lookup(t, str) is str for t in types)
