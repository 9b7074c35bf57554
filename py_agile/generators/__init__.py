"""Generator adapters.

One adapter per engine family. Each owns the translation of its engine's status codes
and momentum units into the canonical event record.

Available Generators:
    - toy: Pure-Python reference engine, always available
    - fpythia: PYTHIA 6 (libpythia6)
    - fherwig: HERWIG 6 (libherwig)
    - fherwigjimmy: HERWIG 6 with JIMMY (libherwig, libjimmy)
    - charybdis_fpythia, charybdis_fherwig, charybdis_fherwigjimmy: CHARYBDIS black holes
      on top of the corresponding host (adds libcharybdis)

Examples:
    >>> from py_agile.generators import ToyGenerator
    >>> ToyGenerator.NATIVE_LIBRARIES
    ()

See Also:
    - py_agile.generics.generator.GeneratorProtocol: Adapter protocol
    - py_agile.interface: Registry that binds libraries and creates adapters
"""

from .base_generator import *
from .charybdis import *
from .fherwig import *
from .fpythia import *
from .toy import *

__all__ = (
    # Base adapter infrastructure
    'BaseGenerator',
    'DEFAULT_SEED',
    'ANY_BEAMS',
    'HADRON_BEAMS',

    # Adapters
    'ToyGenerator',
    'FPythiaGenerator',
    'FHerwigGenerator',
    'FHerwigJimmyGenerator',
    'CharybdisMixin',
    'CharybdisFPythiaGenerator',
    'CharybdisFHerwigGenerator',
    'CharybdisFHerwigJimmyGenerator',
)
