"""Parameter dictionary and parameter files.

A `ParameterDictionary` is an ordered string map: reassigning an existing key keeps its
original position, so dumping the resolved configuration reproduces the order in which
keys were first seen.

Parameter file format:
    ```
    # Comments start with '#', also at the end of a line
    @include common-tune.params     # expanded in place, case-insensitive directive
    MSTP(51) = 10042
    PARP(82) 2.1                    # "KEY VALUE" is accepted too
    RG:Beam1 = PROTON               # meta-parameter, consumed by the run driver
    ```

Precedence when resolving a run configuration: files in the order given (includes expanded
in place), then explicit `KEY=VALUE` overrides. Later assignments win.
"""
import re
from collections.abc import MutableMapping
from pathlib import Path

from typing_extensions import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from py_agile.exceptions import ConfigurationError, ParamFileError
from py_agile.logger import logger
from py_agile.native import find_file

__all__ = (
    'META_PREFIX',
    'ParameterDictionary',
    'is_meta_key',
    'parse_param_string',
    'read_param_file',
    'resolve_parameters',
)

META_PREFIX = 'RG:'

_INCLUDE_RE = re.compile(r'^@include\s+(.+)$', re.IGNORECASE)
_ASSIGN_RE = re.compile(r'^([^=\s]+)\s*(?:=\s*|\s+)(.*)$')


def is_meta_key(key: str) -> bool:
    """True for driver bookkeeping keys, which are never forwarded to a generator."""
    return key.upper().startswith(META_PREFIX)


class ParameterDictionary(MutableMapping):
    """Ordered, unique-key string map."""

    def __init__(self, items: Union[None, Iterable[Tuple[str, str]], Dict[str, str]] = None):
        self._data: Dict[str, str] = {}
        if items is not None:
            self.update(items)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value) -> None:
        key = str(key).strip()
        if not key:
            raise ConfigurationError("Parameter key must not be empty")
        self._data[key] = str(value).strip()

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._data.items())!r})"

    def meta(self) -> 'ParameterDictionary':
        """Meta-parameters only, keys upper-cased."""
        return ParameterDictionary((k.upper(), v) for k, v in self._data.items() if is_meta_key(k))

    def native_items(self) -> List[Tuple[str, str]]:
        """Pairs to forward to a generator, in order."""
        return [(k, v) for k, v in self._data.items() if not is_meta_key(k)]

    def dump(self) -> str:
        return "".join(f"{k} = {v}\n" for k, v in self._data.items())


def parse_param_string(text: str) -> Tuple[str, str]:
    """Split a `KEY=VALUE` (or `KEY VALUE`) string."""
    match = _ASSIGN_RE.match(text.strip())
    if match is None or not match.group(2).strip():
        raise ConfigurationError(f"Malformed parameter string {text!r}, expected KEY=VALUE")
    return match.group(1), match.group(2).strip()


def _resolve_include(name: str, parent: Path, path: Optional[Sequence[Path]]) -> Path:
    local = parent / name
    if not Path(name).is_absolute() and local.is_file():
        return local
    found = find_file(name, path)
    if found is None:
        raise ParamFileError(name, "not found on the search path")
    return found


def _read_into(params: ParameterDictionary, filename: Path,
               path: Optional[Sequence[Path]], stack: Tuple[Path, ...]) -> None:
    resolved = filename.resolve()
    if resolved in stack:
        chain = " -> ".join(str(p) for p in stack + (resolved,))
        raise ConfigurationError(f"Recursive @include: {chain}")
    try:
        lines = filename.read_text(encoding='utf-8').splitlines()
    except OSError as e:
        raise ParamFileError(str(filename), e.strerror or str(e)) from e
    except UnicodeDecodeError as e:
        raise ParamFileError(str(filename), f"not a text file ({e.reason} at byte {e.start})") from e

    logger.debug(f"Reading parameters from {filename}")
    for lineno, raw in enumerate(lines, 1):
        line = raw.split('#', 1)[0].strip()
        if not line:
            continue
        if match := _INCLUDE_RE.match(line):
            include = _resolve_include(match.group(1).strip(), filename.parent, path)
            _read_into(params, include, path, stack + (resolved,))
            continue
        try:
            key, value = parse_param_string(line)
        except ConfigurationError as e:
            raise ConfigurationError(f"{filename}:{lineno}: {e}") from e
        params[key] = value


def read_param_file(name: Union[str, Path], path: Optional[Sequence[Path]] = None,
                    params: Optional[ParameterDictionary] = None) -> ParameterDictionary:
    """Read a parameter file, expanding `@include` directives in place.

    Args:
        name: File name; bare names are resolved on the search path.
        path: Search path override.
        params: Dictionary to update; a new one is created when None.

    Raises:
        ParamFileError: The file, or an included file, is missing or unreadable.
        ConfigurationError: A line cannot be parsed or includes are recursive.
    """
    params = ParameterDictionary() if params is None else params
    filename = find_file(str(name), path)
    if filename is None:
        raise ParamFileError(str(name), "not found")
    _read_into(params, filename, path, ())
    return params


def resolve_parameters(files: Sequence[Union[str, Path]] = (), overrides: Sequence[str] = (),
                       path: Optional[Sequence[Path]] = None) -> ParameterDictionary:
    """Build the run's parameter dictionary: files in order, then `KEY=VALUE` overrides."""
    params = ParameterDictionary()
    for name in files:
        read_param_file(name, path, params)
    for override in overrides:
        key, value = parse_param_string(override)
        params[key] = value
    return params
