"""Generator protocol module for py_agile.

This module defines the GeneratorProtocol that every generator adapter implements. One
adapter instance is a handle on one native engine; because the engines keep process-global
state, at most one handle is live per process and its lifecycle is strictly ordered:

    configure (set_initial_state, set_seed, set_param)
      -> generate_event / get_event_record, repeatedly
      -> finalize, exactly once

Classes:
    GeneratorProtocol: Type protocol for generator adapters
"""

# Standard library imports
from abc import abstractmethod

# Third-party imports
from typing_extensions import Optional, Protocol, runtime_checkable

# Local imports
from py_agile.beams import BeamSpec
from py_agile.event import EventRecord

__all__ = ['GeneratorProtocol']


@runtime_checkable
class GeneratorProtocol(Protocol):
    """Protocol defining the interface of an event generator adapter.

    Required Methods:
        - set_initial_state: Configure the two incoming beams.
        - set_seed: Seed the engine's random number generator.
        - set_param: Forward one native parameter.
        - generate_event: Generate exactly one event.
        - get_event_record: Build the canonical record of the last event.
        - finalize: Flush statistics and release the engine.

    Examples:
        ```python
        from py_agile.beams import parse_beams
        from py_agile.interface import create

        gen = create("toy")
        gen.set_initial_state(*parse_beams("LHC:14000"))
        gen.set_seed(31415)
        gen.set_param("nmult", "20")
        if gen.generate_event():
            record = gen.get_event_record()
        gen.finalize()
        ```

    See Also:
        - py_agile.generators.base_generator.BaseGenerator: Base implementation
        - py_agile.driver.RunDriver: Drives any GeneratorProtocol implementation
    """

    @property
    def name(self) -> str:
        ...

    @property
    def version(self) -> str:
        ...

    @property
    def cross_section(self) -> Optional[float]:
        """Total cross-section in pb, None when the engine does not report one."""
        ...

    @abstractmethod
    def set_initial_state(self, beam_a: BeamSpec, beam_b: BeamSpec) -> None:
        """Configure the incoming beams.

        Raises:
            InvalidBeamError: Unsupported particle combination or non-positive momentum.
            StateError: Called after the first event.
        """
        ...

    @abstractmethod
    def set_seed(self, seed: int) -> None:
        """Seed the engine. Raises StateError after the first event."""
        ...

    @abstractmethod
    def set_param(self, key: str, value: str) -> None:
        """Forward one native parameter.

        Raises:
            UnknownParameterError: The engine does not recognise `key`.
            InvalidValueError: `value` cannot be coerced to the native type.
            StateError: Called after the first event.
        """
        ...

    @abstractmethod
    def generate_event(self) -> bool:
        """Generate one event; False when the engine reports a failure.

        Raises:
            NativeFault: The engine aborted or crashed.
        """
        ...

    @abstractmethod
    def get_event_record(self) -> EventRecord:
        """Record of the last successful event. Raises NoEventAvailableError otherwise."""
        ...

    @abstractmethod
    def finalize(self) -> None:
        """Flush and release the engine. Raises StateError when called twice."""
        ...
