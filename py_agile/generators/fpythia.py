"""PYTHIA 6 adapter.

Drives the Fortran PYTHIA 6 library (`libpythia6`) through ctypes:

    PYGIVE  set one parameter from a "KEY=VALUE" string
    PYINIT  initialise for a frame, beam, target and energy
    PYEVNT  generate one event into PYJETS
    PYHEPC  copy PYJETS into HEPEVT
    PYSTAT  print run statistics

Common blocks used: PYDAT1 (MSTU error codes), PYPARS (version, cross-section and event
weight), PYDATR (random seed), PYJETS (beam momenta for the 3MOM frame) and HEPEVT.
Parameters are validated against the PYGIVE syntax before anything is passed on; they are
applied at initialisation, after the seed, in the order they were set.
"""
import ctypes
import re

from typing_extensions import Any, Optional, Sequence, Tuple, override

from py_agile.beams import ParticleKind
from py_agile.event import EventRecordBuilder, ParticleStatus
from py_agile.exceptions import GenerationError, InvalidValueError, UnknownParameterError
from py_agile.generators.base_generator import ANY_BEAMS, BaseGenerator
from py_agile.generators.hepevt import HepEvt, fill_builder
from py_agile.logger import logger
from py_agile.native import NativeLibrary, fortran_symbol

__all__ = ('FPythiaGenerator', 'PYTHIA_BEAM_NAMES', 'PYTHIA_STATUS_MAP')

c_int_p = ctypes.POINTER(ctypes.c_int)
c_double_p = ctypes.POINTER(ctypes.c_double)

PYTHIA_BEAM_NAMES = {
    ParticleKind.PROTON: 'p+',
    ParticleKind.ANTIPROTON: 'pbar-',
    ParticleKind.ELECTRON: 'e-',
    ParticleKind.POSITRON: 'e+',
}

# HEPEVT codes written by PYHEPC; 4 is assigned to the two incoming beam lines
PYTHIA_STATUS_MAP = {
    1: ParticleStatus.STABLE,
    2: ParticleStatus.DECAYED,
    3: ParticleStatus.DOCUMENTATION,
    4: ParticleStatus.BEAM,
}

_INT_BLOCKS = ('MSTU', 'MSTJ', 'MSTP', 'MSTI', 'MSUB', 'MDCY', 'MDME', 'KFIN', 'KCHG', 'MRPY', 'IMSS')
_REAL_BLOCKS = ('PARU', 'PARJ', 'PARP', 'PARI', 'CKIN', 'PMAS', 'BRAT', 'RRPY', 'RMSS', 'PARF', 'VCKM')
_INT_SCALARS = ('MSEL', 'MSELPD')
_ARRAY_RE = re.compile(r'^([A-Z]+)\(\s*(-?\d+)\s*(?:,\s*(-?\d+)\s*)?\)$')
_INT_RE = re.compile(r'^[+-]?\d+$')
_REAL_RE = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[EeDd][+-]?\d+)?$')


class _PyDat1(ctypes.Structure):
    _fields_ = [
        ('mstu', ctypes.c_int * 200),
        ('paru', ctypes.c_double * 200),
        ('mstj', ctypes.c_int * 200),
        ('parj', ctypes.c_double * 200),
    ]


class _PyPars(ctypes.Structure):
    _fields_ = [
        ('mstp', ctypes.c_int * 200),
        ('parp', ctypes.c_double * 200),
        ('msti', ctypes.c_int * 200),
        ('pari', ctypes.c_double * 200),
    ]


class _PyDatR(ctypes.Structure):
    _fields_ = [
        ('mrpy', ctypes.c_int * 6),
        ('rrpy', ctypes.c_double * 100),
    ]


class _PyJets(ctypes.Structure):
    # K(4000,5), P(4000,5), V(4000,5): column-major, so P(I,J) is p[J-1][I-1]
    _fields_ = [
        ('n', ctypes.c_int),
        ('npad', ctypes.c_int),
        ('k', (ctypes.c_int * 4000) * 5),
        ('p', (ctypes.c_double * 4000) * 5),
        ('v', (ctypes.c_double * 4000) * 5),
    ]


def pygive_string(key: str, value: str) -> str:
    """Validate a PYTHIA parameter and return the normalised PYGIVE command.

    >>> pygive_string("mstp(51)", "10042")
    'MSTP(51)=10042'
    """
    name = key.strip().upper().replace(' ', '')
    match = _ARRAY_RE.match(name)
    block = match.group(1) if match else name
    if block in _INT_BLOCKS and match or block in _INT_SCALARS and not match:
        if not _INT_RE.match(value):
            raise InvalidValueError(key, value, "an integer")
    elif block in _REAL_BLOCKS and match:
        if not _REAL_RE.match(value):
            raise InvalidValueError(key, value, "a real number")
    else:
        raise UnknownParameterError(key, 'fpythia')
    return f"{name}={value}"


class FPythiaGenerator(BaseGenerator):
    """PYTHIA 6 through its Fortran interface."""

    NAME = 'fpythia'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('pythia6',)
    SUPPORTED_BEAMS = ANY_BEAMS
    STATUS_MAP = PYTHIA_STATUS_MAP
    MOMENTUM_UNIT = 1.0

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        super().__init__(libraries)
        self._bind_pythia(self.library('pythia6'))

    def _bind_pythia(self, lib: NativeLibrary) -> None:
        self._pygive = lib.function(fortran_symbol('PYGIVE'), [ctypes.c_char_p, ctypes.c_size_t])
        self._pyinit = lib.function(fortran_symbol('PYINIT'),
                                    [ctypes.c_char_p, ctypes.c_char_p, ctypes.c_char_p, c_double_p,
                                     ctypes.c_size_t, ctypes.c_size_t, ctypes.c_size_t])
        self._pyevnt = lib.function(fortran_symbol('PYEVNT'))
        self._pyhepc = lib.function(fortran_symbol('PYHEPC'), [c_int_p])
        self._pystat = lib.function(fortran_symbol('PYSTAT'), [c_int_p])
        self._pydat1 = lib.common_block(fortran_symbol('PYDAT1'), _PyDat1)
        self._pypars = lib.common_block(fortran_symbol('PYPARS'), _PyPars)
        self._pydatr = lib.common_block(fortran_symbol('PYDATR'), _PyDatR)
        self._pyjets = lib.common_block(fortran_symbol('PYJETS'), _PyJets)
        self._hepevt = lib.common_block(fortran_symbol('HEPEVT'), HepEvt)

    @property
    @override
    def version(self) -> str:
        # MSTP(181), MSTP(182)
        return f"{self._pypars.mstp[180]}.{self._pypars.mstp[181]}"

    @property
    @override
    def cross_section(self) -> Optional[float]:
        if not self._initialized:
            return None
        # PARI(1) is in mb
        return self._pypars.pari[0] * 1e9

    def pygive(self, command: str) -> None:
        raw = command.encode('ascii')
        self._pygive(raw, len(raw))

    def _pythia_frame(self) -> Tuple[str, float]:
        """Frame name and energy for PYINIT, filling PYJETS for the 3MOM frame."""
        assert self._beams is not None
        beam_a, beam_b = self._beams
        if beam_a.momentum == beam_b.momentum:
            return 'CMS', beam_a.momentum + beam_b.momentum
        self._pyjets.p[2][0] = beam_a.momentum
        self._pyjets.p[2][1] = -beam_b.momentum
        for j in (0, 1):
            self._pyjets.p[j][0] = 0.0
            self._pyjets.p[j][1] = 0.0
        return '3MOM', 0.0

    def _call_pyinit(self, frame: str, energy: float) -> None:
        assert self._beams is not None
        if frame == 'USER':
            # Beams come from the HEPRUP common block of the user process
            beam = target = b' '
        else:
            beam = PYTHIA_BEAM_NAMES[self._beams[0].kind].encode('ascii')
            target = PYTHIA_BEAM_NAMES[self._beams[1].kind].encode('ascii')
        raw_frame = frame.encode('ascii')
        win = ctypes.c_double(energy)
        logger.debug(f"PYINIT({frame}, {beam.decode()}, {target.decode()}, {energy})")
        self._pyinit(raw_frame, beam, target, ctypes.byref(win), len(raw_frame), len(beam), len(target))

    def _apply_pythia_params(self) -> None:
        # MRPY(1) seed; MRPY(2)=0 forces re-initialisation of the generator
        self._pydatr.mrpy[0] = self._seed
        self._pydatr.mrpy[1] = 0
        for _, command in self._params:
            if isinstance(command, str):
                self.pygive(command)

    @override
    def _coerce_param(self, key: str, value: str) -> Any:
        return pygive_string(key, value)

    @override
    def _initialize(self) -> None:
        self._apply_pythia_params()
        self._pydat1.mstu[23] = 0
        self._call_pyinit(*self._pythia_frame())
        if self._pydat1.mstu[23] != 0:
            raise GenerationError(f"{self.name}: PYINIT failed with error code {self._pydat1.mstu[23]}")

    @override
    def _generate(self) -> bool:
        # MSTU(24): type of the latest error
        self._pydat1.mstu[23] = 0
        self._pyevnt()
        if self._pydat1.mstu[23] != 0:
            logger.warning(f"{self.name}: PYEVNT error code {self._pydat1.mstu[23]}")
            return False
        self._pyhepc(ctypes.byref(ctypes.c_int(1)))
        return True

    @override
    def _fill_record(self, builder: EventRecordBuilder) -> None:
        fill_builder(self._hepevt, builder, mother_range=True, beam_lines=2, beam_status=4)

    @override
    def _event_weights(self) -> Sequence[float]:
        # PARI(7): event weight
        return (self._pypars.pari[6] or 1.0,)

    @override
    def _finalize_native(self) -> None:
        self._pystat(ctypes.byref(ctypes.c_int(1)))
