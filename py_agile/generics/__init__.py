"""Generic type definitions for event generator adapters.

This package defines the contract every generator adapter satisfies, so the run driver,
the registry and the process-isolation proxy can treat adapters interchangeably.

Protocol Definitions:
    GeneratorProtocol: Control and data-extraction interface of one generator handle

Note:
    The protocol is structural: any class implementing the methods is accepted by the
    registry, whether or not it derives from `BaseGenerator`.
"""

from .generator import GeneratorProtocol

__all__ = (
    'GeneratorProtocol',
)
