"""py_agile exception types.

Exception Hierarchy
-------------------

Exception (built-in Python)
├── ValueError
│   └── ConfigurationError
│       ├── InvalidBeamError
│       ├── ParamFileError
│       ├── UnknownGeneratorError
│       ├── UnknownParameterError
│       └── InvalidValueError
├── ImportError
│   └── LibraryLoadError
└── RuntimeError
    └── GeneratorRuntimeError
        ├── StateError
        ├── NoEventAvailableError
        ├── GenerationError
        └── NativeFault

Exception Types
---------------

Configuration Exceptions (reported before any event is generated):

- ConfigurationError: Bad beam string, unparsable energy, malformed `KEY=VALUE` string or
  any other invalid run configuration.

- InvalidBeamError: A generator does not support the requested beam particles, or a beam
  momentum is not positive.

- ParamFileError: A parameter file is missing or unreadable. Contains:
  - path: The file that was requested

- UnknownGeneratorError: The requested generator name is not registered or cannot be
  resolved on the search path. Contains:
  - name: The requested name
  - available: Generator names that are currently resolvable

- UnknownParameterError: The generator does not recognise a parameter key. Contains:
  - key: The offending key

- InvalidValueError: A parameter value cannot be coerced to the native type. Contains:
  - key, value: The offending pair

Library Exceptions:

- LibraryLoadError: A native binding is missing, fails to load, lacks a required symbol or
  has an incompatible version. Contains:
  - available: Generator names that are currently resolvable

Runtime Exceptions:

- GeneratorRuntimeError: Base class for errors raised while driving a generator.

- StateError: An adapter operation was called in the wrong lifecycle state, e.g. `set_seed`
  after the first event or a second `finalize`. These are programming errors.

- NoEventAvailableError: `get_event_record` was called before a successful event.

- GenerationError: The native engine reported an unrecoverable generation failure.

- NativeFault: The native engine aborted or crashed. Contains:
  - exitcode: Exit code of the process that hosted the engine, when known

All exceptions carrying extra attributes pickle with those attributes, so they can be
re-raised across the process boundary of `py_agile.isolation`.
"""
from typing_extensions import Optional, Sequence, Tuple

__all__ = (
    'ConfigurationError',
    'InvalidBeamError',
    'ParamFileError',
    'UnknownGeneratorError',
    'UnknownParameterError',
    'InvalidValueError',
    'LibraryLoadError',
    'GeneratorRuntimeError',
    'StateError',
    'NoEventAvailableError',
    'GenerationError',
    'NativeFault',
)


def _format_available(available: Sequence[str]) -> str:
    if not available:
        return "no generators are available on the search path"
    return "available generators: " + ", ".join(available)


class ConfigurationError(ValueError):
    """Invalid run configuration."""


class InvalidBeamError(ConfigurationError):
    """Unsupported beam particles or non-positive beam momentum."""


class ParamFileError(ConfigurationError):
    """Missing or unreadable parameter file."""

    def __init__(self, path: str, reason: str = ""):
        self.path: str = path
        self.reason: str = reason
        msg = f"Cannot read parameter file '{path}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)

    def __reduce__(self):
        return self.__class__, (self.path, self.reason)


class UnknownGeneratorError(ConfigurationError):
    """Generator name not found.

    Contains:
    - The requested name
    - The generator names currently resolvable
    """

    def __init__(self, name: str, available: Sequence[str] = ()):
        self.name: str = name
        self.available: Tuple[str, ...] = tuple(available)
        super().__init__(f"Unknown generator '{name}'; {_format_available(self.available)}")

    def __reduce__(self):
        return self.__class__, (self.name, self.available)


class UnknownParameterError(ConfigurationError):
    """Parameter key not recognised by the generator."""

    def __init__(self, key: str, generator: str = ""):
        self.key: str = key
        self.generator: str = generator
        msg = f"Unknown parameter '{key}'"
        if generator:
            msg += f" for generator {generator}"
        super().__init__(msg)

    def __reduce__(self):
        return self.__class__, (self.key, self.generator)


class InvalidValueError(ConfigurationError):
    """Parameter value cannot be coerced to the native type."""

    def __init__(self, key: str, value: str, expected: str = ""):
        self.key: str = key
        self.value: str = value
        self.expected: str = expected
        msg = f"Invalid value {value!r} for parameter '{key}'"
        if expected:
            msg += f", expected {expected}"
        super().__init__(msg)

    def __reduce__(self):
        return self.__class__, (self.key, self.value, self.expected)


class LibraryLoadError(ImportError):
    """Native binding missing, unloadable or incompatible."""

    def __init__(self, message: str, available: Sequence[str] = ()):
        self.available: Tuple[str, ...] = tuple(available)
        super().__init__(f"{message}; {_format_available(self.available)}")
        self.message: str = message

    def __reduce__(self):
        return self.__class__, (self.message, self.available)


class GeneratorRuntimeError(RuntimeError):
    """Generator runtime error."""


class StateError(GeneratorRuntimeError):
    """Operation not permitted in the current generator lifecycle state."""


class NoEventAvailableError(GeneratorRuntimeError):
    """No successfully generated event to build a record from."""


class GenerationError(GeneratorRuntimeError):
    """Unrecoverable failure reported by the native engine."""


class NativeFault(GeneratorRuntimeError):
    """The native engine aborted or crashed.

    Contains:
    - The exit code of the hosting process, None when the fault was raised in-process
    """

    def __init__(self, message: str, exitcode: Optional[int] = None):
        self.exitcode: Optional[int] = exitcode
        self.message: str = message
        if exitcode is not None:
            message = f"{message} (exit code {exitcode})"
        super().__init__(message)

    def __reduce__(self):
        return self.__class__, (self.message, self.exitcode)
