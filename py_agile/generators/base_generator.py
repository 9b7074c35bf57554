"""Base class for generator adapters.

The module provides the lifecycle shared by every adapter:
- Configuration (beams, seed, parameters) is validated eagerly and recorded; it is applied
  to the native engine by the first `generate_event`, which performs the initialisation.
- Configuration calls after the first event, and any call after `finalize`, raise StateError.
- An OSError surfacing from a native call is raised as NativeFault.
- `finalize` runs the native termination once and notifies finalize callbacks, which the
  registry uses to release its live slot.

Classes:
    BaseGenerator: Abstract base class for generator adapters

Architecture:
    Concrete adapters implement the native steps (`_coerce_param`, `_initialize`,
    `_generate`, `_fill_record`, `_finalize_native`) and declare their translation
    tables as class attributes. Event records are built by `EventRecordBuilder` from
    `STATUS_MAP` and `MOMENTUM_UNIT`.

See Also:
    py_agile.generics.generator.GeneratorProtocol: Protocol interface
    py_agile.generators: Concrete adapters
"""
from abc import ABC, abstractmethod

from typing_extensions import (Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence,
                               Tuple, override)

from py_agile.beams import BeamSpec, ParticleKind
from py_agile.event import EventRecord, EventRecordBuilder, ParticleStatus
from py_agile.exceptions import (InvalidBeamError, LibraryLoadError, NativeFault, NoEventAvailableError,
                                 StateError)
from py_agile.generics.generator import GeneratorProtocol
from py_agile.logger import logger
from py_agile.native import NativeLibrary

__all__ = ('BaseGenerator', 'DEFAULT_SEED', 'HADRON_BEAMS', 'ANY_BEAMS')

DEFAULT_SEED = 31415926

_KINDS = tuple(ParticleKind)
ANY_BEAMS: FrozenSet[Tuple[ParticleKind, ParticleKind]] = frozenset((a, b) for a in _KINDS for b in _KINDS)
HADRON_BEAMS: FrozenSet[Tuple[ParticleKind, ParticleKind]] = frozenset(
    (a, b) for a in (ParticleKind.PROTON, ParticleKind.ANTIPROTON)
    for b in (ParticleKind.PROTON, ParticleKind.ANTIPROTON))


class BaseGenerator(ABC, GeneratorProtocol):
    """Abstract adapter implementing the GeneratorProtocol lifecycle.

    Class attributes:
        NAME: Registry name of the adapter.
        NATIVE_LIBRARIES: Library stems the adapter binds, in load order.
        SUPPORTED_BEAMS: Accepted (beam_a, beam_b) particle combinations.
        STATUS_MAP: Native status code -> canonical status.
        MOMENTUM_UNIT: Native momentum unit in GeV.
    """

    NAME: str = ''
    NATIVE_LIBRARIES: Tuple[str, ...] = ()
    SUPPORTED_BEAMS: FrozenSet[Tuple[ParticleKind, ParticleKind]] = ANY_BEAMS
    STATUS_MAP: Mapping[int, ParticleStatus] = {}
    MOMENTUM_UNIT: float = 1.0

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        self._libraries: Dict[str, NativeLibrary] = {lib.stem: lib for lib in libraries}
        self._beams: Optional[Tuple[BeamSpec, BeamSpec]] = None
        self._seed: int = DEFAULT_SEED
        self._params: List[Tuple[str, Any]] = []
        self._initialized: bool = False
        self._finalized: bool = False
        self._num_events: int = 0
        self._last_ok: bool = False
        self._finalize_callbacks: List[Callable[[], None]] = []

    def __repr__(self) -> str:
        state = 'finalized' if self._finalized else 'running' if self._initialized else 'configuring'
        return f"<{self.__class__.__name__} {self.name!r} {state}>"

    @property
    def name(self) -> str:
        return self.NAME or self.__class__.__name__

    @property
    def version(self) -> str:
        return "unknown"

    @property
    def cross_section(self) -> Optional[float]:
        return None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def num_events(self) -> int:
        return self._num_events

    @property
    def beams(self) -> Optional[Tuple[BeamSpec, BeamSpec]]:
        return self._beams

    @property
    def seed(self) -> int:
        return self._seed

    def library(self, stem: str) -> NativeLibrary:
        try:
            return self._libraries[stem]
        except KeyError:
            raise LibraryLoadError(f"{self.name}: native library '{stem}' was not bound") from None

    def add_finalize_callback(self, callback: Callable[[], None]) -> None:
        self._finalize_callbacks.append(callback)

    def _check_configurable(self, operation: str) -> None:
        if self._finalized:
            raise StateError(f"{self.name}: {operation} after finalize")
        if self._initialized:
            raise StateError(f"{self.name}: {operation} after the first event")

    @override
    def set_initial_state(self, beam_a: BeamSpec, beam_b: BeamSpec) -> None:
        self._check_configurable("set_initial_state")
        for beam in (beam_a, beam_b):
            if not beam.momentum > 0:
                raise InvalidBeamError(f"{self.name}: beam momentum must be positive, got {beam.momentum}")
        kinds = (ParticleKind(beam_a.kind), ParticleKind(beam_b.kind))
        if kinds not in self.SUPPORTED_BEAMS:
            raise InvalidBeamError(f"{self.name}: unsupported beams {kinds[0].name} + {kinds[1].name}")
        self._beams = (BeamSpec(kinds[0], float(beam_a.momentum)), BeamSpec(kinds[1], float(beam_b.momentum)))
        logger.debug(f"{self.name}: beams {self._beams[0]} {self._beams[1]}")

    @override
    def set_seed(self, seed: int) -> None:
        self._check_configurable("set_seed")
        self._seed = int(seed)
        logger.debug(f"{self.name}: seed {self._seed}")

    @override
    def set_param(self, key: str, value: str) -> None:
        self._check_configurable("set_param")
        key, value = str(key).strip(), str(value).strip()
        self._params.append((key, self._coerce_param(key, value)))
        logger.debug(f"{self.name}: {key} = {value}")

    @override
    def generate_event(self) -> bool:
        if self._finalized:
            raise StateError(f"{self.name}: generate_event after finalize")
        try:
            if not self._initialized:
                if self._beams is None:
                    raise StateError(f"{self.name}: beams must be set before the first event")
                logger.info(f"Initialising {self.name} {self.version}")
                self._initialize()
                self._initialized = True
            self._num_events += 1
            self._last_ok = False
            self._last_ok = bool(self._generate())
        except OSError as e:
            raise NativeFault(f"{self.name}: native fault: {e}") from e
        if not self._last_ok:
            logger.warning(f"{self.name}: event {self._num_events} failed")
        return self._last_ok

    @override
    def get_event_record(self) -> EventRecord:
        if self._finalized:
            raise StateError(f"{self.name}: get_event_record after finalize")
        if not self._last_ok:
            raise NoEventAvailableError(f"{self.name}: no successfully generated event")
        builder = EventRecordBuilder(self.STATUS_MAP, self.MOMENTUM_UNIT, self.name)
        try:
            self._fill_record(builder)
        except OSError as e:
            raise NativeFault(f"{self.name}: native fault: {e}") from e
        return builder.build(self._num_events, self._event_weights())

    @override
    def finalize(self) -> None:
        if self._finalized:
            raise StateError(f"{self.name}: finalize called twice")
        self._finalized = True
        try:
            if self._initialized:
                self._finalize_native()
        except OSError as e:
            raise NativeFault(f"{self.name}: native fault: {e}") from e
        finally:
            for callback in self._finalize_callbacks:
                callback()
            self._finalize_callbacks.clear()
            logger.debug(f"{self.name}: finalized after {self._num_events} events")

    def _event_weights(self) -> Sequence[float]:
        return (1.0,)

    @abstractmethod
    def _coerce_param(self, key: str, value: str) -> Any:
        """Validate a parameter and convert it to its native type.

        Raises:
            UnknownParameterError: Unrecognised key.
            InvalidValueError: Value not convertible.
        """
        raise NotImplementedError

    @abstractmethod
    def _initialize(self) -> None:
        """Apply beams, seed and parameters and initialise the native engine."""
        raise NotImplementedError

    @abstractmethod
    def _generate(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def _fill_record(self, builder: EventRecordBuilder) -> None:
        raise NotImplementedError

    def _finalize_native(self) -> None:
        pass
