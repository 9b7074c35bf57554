"""Native library discovery and loading.

Generator engines are legacy Fortran libraries. They are located on an ordered search
path and bound with `ctypes`; their common blocks are mapped onto `ctypes.Structure`
subclasses with `in_dll`, so a binding module only has to declare the layout of the
fields it touches.

Search order:
    1. The current working directory
    2. Directories passed explicitly by the caller
    3. Entries of the `AGILE_GEN_PATH` environment variable (os.pathsep separated)
    4. `search_path` from the `.agile.toml` settings file
    5. Installation defaults: `<prefix>/lib` and `<prefix>/share/AGILe`

Locating a library only checks the filesystem. Nothing is loaded until
`load_libraries` is called by the registry for the generator being created.
"""
import ctypes
import os
import sys
from pathlib import Path

from typing_extensions import Any, Iterable, List, Optional, Sequence, Type, TypeVar

from py_agile.config import get_config
from py_agile.exceptions import LibraryLoadError
from py_agile.logger import logger

__all__ = (
    'ENV_SEARCH_PATH',
    'search_path',
    'find_file',
    'find_library',
    'fortran_symbol',
    'NativeLibrary',
    'load_libraries',
)

ENV_SEARCH_PATH = 'AGILE_GEN_PATH'
_LIBRARY_PATTERNS = ('lib{stem}.so', 'lib{stem}.dylib', 'lib{stem}.so.*', '{stem}.dll')

StructT = TypeVar('StructT', bound=ctypes.Structure)


def _install_prefixes() -> List[Path]:
    return [Path(sys.prefix) / 'lib', Path(sys.prefix) / 'share' / 'AGILe']


def search_path(extra: Iterable[str] = ()) -> List[Path]:
    """Return the ordered, de-duplicated list of search locations."""
    candidates: List[Path] = [Path.cwd()]
    candidates.extend(Path(p) for p in extra)
    candidates.extend(Path(p) for p in os.environ.get(ENV_SEARCH_PATH, '').split(os.pathsep) if p)
    candidates.extend(Path(p) for p in get_config().search_path)
    candidates.extend(_install_prefixes())

    seen = set()
    result: List[Path] = []
    for candidate in candidates:
        key = os.path.normcase(os.path.abspath(candidate))
        if key not in seen:
            seen.add(key)
            result.append(candidate)
    return result


def find_file(name: str, path: Optional[Sequence[Path]] = None) -> Optional[Path]:
    """Resolve a file name against the search path.

    Absolute names and names with a directory component are returned as-is when they exist.
    """
    candidate = Path(name).expanduser()
    if candidate.is_absolute() or len(candidate.parts) > 1:
        return candidate if candidate.is_file() else None
    for directory in (search_path() if path is None else path):
        if (directory / name).is_file():
            return directory / name
    return None


def find_library(stem: str, path: Optional[Sequence[Path]] = None) -> Optional[Path]:
    """Return the first shared library matching `stem` on the search path, without loading it."""
    for directory in (search_path() if path is None else path):
        if not directory.is_dir():
            continue
        for pattern in _LIBRARY_PATTERNS:
            matches = sorted(directory.glob(pattern.format(stem=stem)))
            if matches:
                return matches[0]
    return None


def fortran_symbol(name: str) -> str:
    """Name of a Fortran routine or common block as exported by gfortran."""
    return name.lower() + '_'


class NativeLibrary:
    """A loaded shared library.

    Libraries are opened with RTLD_GLOBAL: the Fortran generators resolve symbols from each
    other (CHARYBDIS calls PYTHIA's random number generator, JIMMY extends HERWIG).
    """

    def __init__(self, stem: str, path: Path):
        self.stem: str = stem
        self.path: Path = path
        try:
            self._cdll = ctypes.CDLL(str(path), mode=ctypes.RTLD_GLOBAL)
        except OSError as e:
            raise LibraryLoadError(f"Cannot load native library {path}: {e}") from e
        logger.debug(f"Loaded native library {stem} from {path}")

    def __repr__(self) -> str:
        return f"NativeLibrary({self.stem!r}, {str(self.path)!r})"

    def function(self, name: str, argtypes: Optional[Sequence[Any]] = None, restype: Any = None) -> Any:
        """Resolve a routine and declare its signature."""
        try:
            fn = getattr(self._cdll, name)
        except AttributeError as e:
            raise LibraryLoadError(f"Unresolved symbol '{name}' in {self.path}") from e
        fn.argtypes = list(argtypes) if argtypes is not None else []
        fn.restype = restype
        return fn

    def common_block(self, name: str, struct_type: Type[StructT]) -> StructT:
        """Map a common block onto `struct_type`."""
        try:
            return struct_type.in_dll(self._cdll, name)
        except ValueError as e:
            raise LibraryLoadError(f"Unresolved common block '{name}' in {self.path}") from e


def load_libraries(stems: Sequence[str], path: Optional[Sequence[Path]] = None) -> List[NativeLibrary]:
    """Locate and load `stems` in order. Raises LibraryLoadError on the first missing library."""
    path = search_path() if path is None else path
    libraries = []
    for stem in stems:
        location = find_library(stem, path)
        if location is None:
            raise LibraryLoadError(
                f"Native library 'lib{stem}' not found in: " + os.pathsep.join(str(p) for p in path))
        libraries.append(NativeLibrary(stem, location))
    return libraries
