from importlib.metadata import EntryPoint
from types import SimpleNamespace
from typing import cast

import pytest

from py_agile.exceptions import ConfigurationError, LibraryLoadError, StateError, UnknownGeneratorError
from py_agile.generators import ToyGenerator
from py_agile.interface import (BUILTIN_GENERATORS, GeneratorRegistry, _GeneratorLoader, create,
                                register_generator)


class TestGeneratorRegistry:

    def test_list_generators(self):
        names = GeneratorRegistry.list_generators()
        assert names[:len(BUILTIN_GENERATORS)] == list(BUILTIN_GENERATORS)
        assert len(names) == len(set(names))

    def test_unknown_generator_lists_available(self, tmp_path):
        with pytest.raises(ConfigurationError) as excinfo:
            create('nosuch', [tmp_path])
        error = excinfo.value
        assert isinstance(error, UnknownGeneratorError)
        assert error.name == 'nosuch'
        assert error.available == ('toy',)
        assert 'toy' in str(error)

    def test_availability_checks_files_only(self, tmp_path):
        assert not GeneratorRegistry.is_available('fpythia', [tmp_path])
        (tmp_path / 'libpythia6.so').write_bytes(b'not a real library')
        assert GeneratorRegistry.is_available('fpythia', [tmp_path])
        assert 'fpythia' in GeneratorRegistry.available_generators([tmp_path])
        assert 'charybdis_fpythia' not in GeneratorRegistry.available_generators([tmp_path])
        assert not GeneratorRegistry.is_available('nosuch', [tmp_path])

    def test_missing_library(self, tmp_path):
        with pytest.raises(LibraryLoadError) as excinfo:
            create('fherwig', [tmp_path])
        assert excinfo.value.available == ('toy',)
        assert 'libherwig' in str(excinfo.value)
        assert GeneratorRegistry.live() is None

    def test_unloadable_library(self, tmp_path):
        (tmp_path / 'libpythia6.so').write_bytes(b'not a real library')
        with pytest.raises(LibraryLoadError):
            create('fpythia', [tmp_path])

    def test_single_live_generator(self, tmp_path):
        generator = create('toy', [tmp_path])
        assert isinstance(generator, ToyGenerator)
        assert GeneratorRegistry.live() is generator
        with pytest.raises(StateError):
            create('toy', [tmp_path])
        generator.finalize()
        assert GeneratorRegistry.live() is None
        again = create('toy', [tmp_path])
        assert again is not generator
        again.finalize()

    def test_module_class_name(self, tmp_path):
        generator = create('py_agile.generators.toy:ToyGenerator', [tmp_path])
        assert generator.name == 'toy'
        generator.finalize()

    def test_register(self, tmp_path):
        @register_generator('mytoy')
        class MyToy(ToyGenerator):
            NAME = 'mytoy'

        assert 'mytoy' in GeneratorRegistry.list_generators()
        generator = create('mytoy', [tmp_path])
        assert isinstance(generator, MyToy)
        generator.finalize()
        GeneratorRegistry.unregister('mytoy')
        assert 'mytoy' not in GeneratorRegistry.list_generators()

    def test_register_rejects_non_generator(self):
        with pytest.raises(TypeError):
            GeneratorRegistry.register('bad', dict)

    def test_native_libraries(self):
        assert GeneratorRegistry.native_libraries(ToyGenerator) == ()
        fherwigjimmy = GeneratorRegistry.get_generator('charybdis_fherwigjimmy')
        assert GeneratorRegistry.native_libraries(fherwigjimmy) == ('herwig', 'jimmy', 'charybdis')


@pytest.mark.extended
class TestGeneratorLoaderExtended:

    class DummyEP:
        def __init__(self, name: str, value: str, group: str, loader):
            self.name = name
            self.value = value
            self.group = group
            self._loader = loader

        def load(self):  # Mimic importlib.metadata.EntryPoint API
            return self._loader()

    def test_load_from_entry_import_error(self):
        def boom():
            raise ImportError("nope")

        ep = self.DummyEP("bad_generator", "x.y:Z", _GeneratorLoader._entry_point_group, boom)
        assert _GeneratorLoader._load_from_entry(cast(EntryPoint, ep)) is None

    def test_load_from_entry_type_error(self):
        ep = self.DummyEP("not_generator", "x.y:Z", _GeneratorLoader._entry_point_group,
                          lambda: SimpleNamespace())
        assert _GeneratorLoader._load_from_entry(cast(EntryPoint, ep)) is None

    def test_bad_module_class_name(self):
        assert GeneratorRegistry.get_generator('py_agile.generators.toy:NoSuchClass') is None

    def test_installed_entry_points(self):
        names = _GeneratorLoader.entry_point_names()
        assert 'toy' in names
        assert all(not n.endswith('_generator') for n in names)
