"""Uniform control interface and run driver for HEP event generators."""

import importlib.metadata

__version__ = importlib.metadata.version("py-agile")

# Standard library imports
import os
import sys

# Third-party imports
from typing_extensions import Optional

# Local imports
from .config import AgileConfig, basic_config, get_config
from .logger import logger as log

if sys.version_info[:2] < (3, 11):
    import tomli as tomllib
else:
    import tomllib


def _load_config(filepath: Optional[str] = None, suppress_warnings: bool = False) -> None:
    """Load settings from an .agile.toml file.

    Args:
        filepath: Path to the settings file. If None, searches for .agile.toml or agile.toml
        suppress_warnings: If True, suppress warning messages
    """
    def find_agile_toml(start_dir: str = os.getcwd()) -> Optional[str]:
        """Search upwards from `start_dir` for a settings file.

        Returns:
            The absolute path to the settings file if found, otherwise None.
        """
        current_dir = os.path.abspath(start_dir)
        while True:
            agile_paths = [
                os.path.join(current_dir, '.agile.toml'),
                os.path.join(current_dir, 'agile.toml'),
            ]
            for agile_path in agile_paths:
                if os.path.exists(agile_path):
                    return os.path.abspath(agile_path)

            parent_dir = os.path.dirname(current_dir)
            if parent_dir == current_dir:
                return None
            current_dir = parent_dir

    if filepath is None:
        filepath = find_agile_toml()

    if filepath is None:
        basic_config(AgileConfig())
        return

    log.debug(f"Found {os.path.basename(filepath)} at {os.path.dirname(filepath)}")
    with open(filepath, "rb") as fp:
        _config = tomllib.load(fp)

    _agile = _config.get('agile')
    if not _agile:
        if not suppress_warnings:
            log.warning("Config has no `agile` section")
        basic_config(AgileConfig())
        return

    search_path = _agile.get('search_path', ())
    if isinstance(search_path, str):
        search_path = (search_path,)
    basic_config(AgileConfig(
        search_path=tuple(str(p) for p in search_path),
        precision=int(_agile.get('precision', AgileConfig.precision)),
        filter_level=int(_agile.get('filter_level', AgileConfig.filter_level)),
        isolate=bool(_agile.get('isolate', AgileConfig.isolate)),
    ))
    log.debug("Settings load success")


def _basic_config(filename: Optional[str] = None, config: Optional[AgileConfig] = None,
                  suppress_warnings: bool = False) -> None:
    """Set library settings from a file or an AgileConfig.

    Raises:
        ValueError: If both filename and config are provided
    """
    if filename and config:
        raise ValueError("Can't use config and config file at same time")
    if config is not None:
        basic_config(config)
    else:
        _load_config(filename, suppress_warnings)


basicConfig = _basic_config

basicConfig()


from .beams import BeamPair, BeamSpec, ParticleKind, COLLIDERS, parse_beams, parse_energy, parse_particle
from .driver import (CancellationToken, ExitCode, RunDriver, RunResult, RunState, RunStatus,
                     exit_code_for, handle_signals, resolve_beams, resolve_seed)
from .event import EventRecord, EventRecordBuilder, FourMomentum, Particle, ParticleStatus, is_intermediate_pdg
from .exceptions import (ConfigurationError, InvalidBeamError, ParamFileError, UnknownGeneratorError,
                         UnknownParameterError, InvalidValueError, LibraryLoadError, GeneratorRuntimeError,
                         StateError, NoEventAvailableError, GenerationError, NativeFault)
from .filter import FilterLevel, filter_record, kept_statuses
from .generics import GeneratorProtocol
from .hepmc import HepMCWriter, open_writer
from .interface import (GeneratorRegistry, BUILTIN_GENERATORS, available_generators, create, list_generators,
                        register, register_generator)
from .logger import logger, set_console_level, enable_file_logging, disable_file_logging
from .native import search_path, find_library
from .params import ParameterDictionary, parse_param_string, read_param_file, resolve_parameters

# DRY: build __all__ from global symbols
_SKIP_GLOBALS = {
    # Skip Python builtins
    "__name__", "__doc__", "__package__", "__loader__", "__spec__",
    "__file__", "__cached__", "__builtins__", "__path__",
    # Skip imported modules
    "tomllib", "sys", "os", "importlib",
    # Skip submodules bound by the imports above
    "beams", "config", "driver", "event", "exceptions", "filter", "generics", "hepmc",
    "interface", "logger", "native", "params",
    # Skip private/internal symbols and the typing helper
    "_load_config", "_basic_config", "Optional", "log",
}
__all__ = [
    name for name in globals()
    if not name.startswith("_") and name not in _SKIP_GLOBALS
]
__all__.append("logger")
