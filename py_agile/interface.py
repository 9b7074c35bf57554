"""Generator registry and library loading.

This module maps generator names to adapter classes and creates adapter instances bound
to their native libraries. Names come from three places:

- The built-in table of adapters shipped with py_agile
- Entry points in the `py_agile` group whose names end in `_generator` (suffix stripped),
  so third-party packages can add adapters
- Classes registered at runtime with `register` or the `@register_generator` decorator

A `"module:Class"` string is accepted as a name too.

Native engines keep process-global state, so the registry hands out at most one live
adapter per process. The slot is released when the adapter is finalized.

Key Classes:
    - GeneratorRegistry: Name resolution, availability and the single live slot
    - _GeneratorLoader: Internal utility for resolving names and entry points to classes
"""
from importlib.metadata import EntryPoint, entry_points
from pathlib import Path

from typing_extensions import Callable, Dict, Generator, List, Optional, Sequence, Tuple, Type

from py_agile.exceptions import LibraryLoadError, StateError, UnknownGeneratorError
from py_agile.generics.generator import GeneratorProtocol
from py_agile.logger import logger
from py_agile.native import find_library, load_libraries, search_path

__all__ = (
    'GeneratorRegistry',
    'BUILTIN_GENERATORS',
    'list_generators',
    'available_generators',
    'create',
    'register',
    'register_generator',
)

DEFAULT_ENTRY_SUFFIX = '_generator'
DEFAULT_ENTRY_GROUP = 'py_agile'

BUILTIN_GENERATORS: Dict[str, str] = {
    'toy': 'py_agile.generators.toy:ToyGenerator',
    'fpythia': 'py_agile.generators.fpythia:FPythiaGenerator',
    'fherwig': 'py_agile.generators.fherwig:FHerwigGenerator',
    'fherwigjimmy': 'py_agile.generators.fherwig:FHerwigJimmyGenerator',
    'charybdis_fpythia': 'py_agile.generators.charybdis:CharybdisFPythiaGenerator',
    'charybdis_fherwig': 'py_agile.generators.charybdis:CharybdisFHerwigGenerator',
    'charybdis_fherwigjimmy': 'py_agile.generators.charybdis:CharybdisFHerwigJimmyGenerator',
}

GeneratorClass = Type[GeneratorProtocol]


class _GeneratorLoader:
    _entry_point_group = DEFAULT_ENTRY_GROUP
    _entry_point_suffix = DEFAULT_ENTRY_SUFFIX

    @classmethod
    def _get_entries_by_group(cls) -> set:
        all_entry_points = entry_points()
        if hasattr(all_entry_points, 'select'):  # for importlib >= 5
            agile_entry_points = all_entry_points.select(group=cls._entry_point_group)
        elif hasattr(all_entry_points, 'get'):  # for importlib < 5
            agile_entry_points = all_entry_points.get(cls._entry_point_group, [])  # type: ignore[arg-type]
        else:
            raise RuntimeError('Entry point not supported')
        return set(agile_entry_points)

    @classmethod
    def iter_generators(cls) -> Generator[EntryPoint, None, None]:
        """Iterate over all generator entry points."""
        for ep in sorted(cls._get_entries_by_group(), key=lambda e: e.name):
            if ep.name.endswith(cls._entry_point_suffix):
                yield ep

    @classmethod
    def entry_point_names(cls) -> List[str]:
        return [ep.name[:-len(cls._entry_point_suffix)] for ep in cls.iter_generators()]

    @classmethod
    def _load_from_entry(cls, ep: EntryPoint) -> Optional[GeneratorClass]:
        try:
            handle = ep.load()
            if not isinstance(handle, type) or not isinstance(handle, GeneratorProtocol):
                raise TypeError(f"Unsupported generator {ep.value} does not implement GeneratorProtocol")
            logger.debug(f"Loaded generator from: {ep.value} (Class: {handle})")
            return handle
        except ImportError as e:
            logger.error(f"Error loading generator from {ep.value}: {e}")
        except AttributeError as e:
            logger.error(f"Error loading attribute from {ep.value}: {e}")
        except TypeError as e:
            logger.error(str(e))
        return None

    @classmethod
    def load(cls, name: str, registered: Dict[str, GeneratorClass]) -> Optional[GeneratorClass]:
        if name in registered:
            return registered[name]
        if name in BUILTIN_GENERATORS:
            return cls._load_from_entry(EntryPoint(name, BUILTIN_GENERATORS[name], cls._entry_point_group))
        for ep in cls.iter_generators():
            if ep.name == name + cls._entry_point_suffix:
                if handle := cls._load_from_entry(ep):
                    return handle
        if ':' in name:
            return cls._load_from_entry(EntryPoint(name, name, cls._entry_point_group))
        return None


class GeneratorRegistry:
    """Resolves generator names and owns the single live-adapter slot."""

    _registered: Dict[str, GeneratorClass] = {}
    _live: Optional[GeneratorProtocol] = None

    @classmethod
    def register(cls, name: str, generator_class: GeneratorClass) -> None:
        if not isinstance(generator_class, type) or not isinstance(generator_class, GeneratorProtocol):
            raise TypeError(f"Generator {generator_class} does not implement GeneratorProtocol")
        cls._registered[name] = generator_class

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._registered.pop(name, None)

    @classmethod
    def list_generators(cls) -> List[str]:
        """All declared generator names, whether or not their libraries are installed."""
        names = list(BUILTIN_GENERATORS)
        names.extend(n for n in _GeneratorLoader.entry_point_names() if n not in names)
        names.extend(n for n in cls._registered if n not in names)
        return names

    @classmethod
    def get_generator(cls, name: str) -> Optional[GeneratorClass]:
        return _GeneratorLoader.load(name, cls._registered)

    @classmethod
    def native_libraries(cls, generator_class: GeneratorClass) -> Tuple[str, ...]:
        return tuple(getattr(generator_class, 'NATIVE_LIBRARIES', ()))

    @classmethod
    def is_available(cls, name: str, path: Optional[Sequence[Path]] = None) -> bool:
        """True when every native library of `name` exists on the search path. Nothing is loaded."""
        generator_class = cls.get_generator(name)
        if generator_class is None:
            return False
        path = search_path() if path is None else path
        return all(find_library(stem, path) is not None for stem in cls.native_libraries(generator_class))

    @classmethod
    def available_generators(cls, path: Optional[Sequence[Path]] = None) -> List[str]:
        path = search_path() if path is None else path
        return [name for name in cls.list_generators() if cls.is_available(name, path)]

    @classmethod
    def live(cls) -> Optional[GeneratorProtocol]:
        if cls._live is not None and getattr(cls._live, 'finalized', False):
            cls._live = None
        return cls._live

    @classmethod
    def claim(cls, generator: GeneratorProtocol) -> None:
        current = cls.live()
        if current is not None and current is not generator:
            raise StateError(f"Generator {current.name} is still live; finalize it before creating another")
        cls._live = generator
        if hasattr(generator, 'add_finalize_callback'):
            generator.add_finalize_callback(lambda: cls.release(generator))

    @classmethod
    def release(cls, generator: Optional[GeneratorProtocol] = None) -> None:
        if generator is None or cls._live is generator:
            cls._live = None

    @classmethod
    def create(cls, name: str, path: Optional[Sequence[Path]] = None, isolate: bool = False) -> GeneratorProtocol:
        """Create the adapter `name`, bound to its native libraries.

        Args:
            name: Registry name or `"module:Class"`.
            path: Search path override.
            isolate: Run the adapter in a child process (see `py_agile.isolation`).

        Raises:
            UnknownGeneratorError: `name` is not declared or cannot be imported.
            LibraryLoadError: A native library is missing, fails to load or lacks a symbol.
            StateError: Another adapter is live in this process.
        """
        path = search_path() if path is None else path
        current = cls.live()
        if current is not None:
            raise StateError(f"Generator {current.name} is still live; finalize it before creating another")

        generator_class = cls.get_generator(name)
        if generator_class is None:
            raise UnknownGeneratorError(name, cls.available_generators(path))

        try:
            if isolate:
                from py_agile.isolation import IsolatedGenerator
                generator: GeneratorProtocol = IsolatedGenerator(name, path)
            else:
                libraries = load_libraries(cls.native_libraries(generator_class), path)
                generator = generator_class(libraries)  # type: ignore[call-arg]
        except LibraryLoadError as e:
            raise LibraryLoadError(e.message, cls.available_generators(path)) from e
        cls.claim(generator)
        logger.info(f"Created generator {generator.name} ({generator_class.__name__})")
        return generator


list_generators = GeneratorRegistry.list_generators
available_generators = GeneratorRegistry.available_generators
create = GeneratorRegistry.create
register = GeneratorRegistry.register


def register_generator(name: str) -> Callable[[GeneratorClass], GeneratorClass]:
    def decorator(generator_class: GeneratorClass) -> GeneratorClass:
        GeneratorRegistry.register(name, generator_class)
        return generator_class
    return decorator
