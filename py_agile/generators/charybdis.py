"""CHARYBDIS black-hole event generation on top of PYTHIA 6 or HERWIG 6.

CHARYBDIS is a Les Houches user process: its UPINIT/UPEVNT routines are called by the
host engine, PYTHIA through the USER frame, HERWIG through IPROC = -100. The host does
showering, hadronisation and the event record, so the combined adapters keep the host's
status table and HEPEVT translation and add CHARYBDIS's own parameters, which live in
the BHPARM and BH1003 common blocks:

    MPLNCK  Planck mass (GeV)            MSSDEF  Planck mass convention (1-3)
    MINMSS  minimum black-hole mass      NBODY   remnant decay multiplicity
    MAXMSS  maximum black-hole mass      IBHPRN  print level
    INTMPL  Planck-scale treatment       MSSDEC  decay products (1-3)
    TIMVAR  time-dependent temperature   GTSCA   use Planck mass as scale
    GRYBDY  grey-body factors            KINCUT  kinematic cut-off
    TOTDIM  total number of dimensions

Keys not declared by CHARYBDIS are passed on to the host engine's parameter handling.
"""
import ctypes

from typing_extensions import Any, Dict, Optional, Sequence, Tuple, Type, override

from py_agile.beams import ParticleKind
from py_agile.exceptions import InvalidValueError, UnknownParameterError
from py_agile.generators.base_generator import HADRON_BEAMS
from py_agile.generators.common_blocks import CommonSetting, apply_common_setting, coerce_common_value
from py_agile.generators.fherwig import FHerwigGenerator, FHerwigJimmyGenerator
from py_agile.generators.fpythia import FPythiaGenerator
from py_agile.native import NativeLibrary, fortran_symbol

__all__ = (
    'CharybdisMixin',
    'CharybdisFPythiaGenerator',
    'CharybdisFHerwigGenerator',
    'CharybdisFHerwigJimmyGenerator',
    'CHARYBDIS_IPROC',
)

CHARYBDIS_VERSION = "1.003"
CHARYBDIS_IPROC = -100

c_logical = ctypes.c_int


class _BhParm(ctypes.Structure):
    _fields_ = [
        ('mplnck', ctypes.c_double),
        ('minmss', ctypes.c_double),
        ('maxmss', ctypes.c_double),
        ('intmpl', ctypes.c_int),
        ('mssdef', ctypes.c_int),
        ('nbody', ctypes.c_int),
        ('ibhprn', ctypes.c_int),
        ('mssdec', ctypes.c_int),
        ('timvar', c_logical),
        ('gtsca', c_logical),
        ('grybdy', c_logical),
        ('kincut', c_logical),
    ]


class _Bh1003(ctypes.Structure):
    _fields_ = [('totdim', ctypes.c_int)]


class _HepRup(ctypes.Structure):
    # Les Houches run common block
    _fields_ = [
        ('idbmup', ctypes.c_int * 2),
        ('ebmup', ctypes.c_double * 2),
        ('pdfgup', ctypes.c_int * 2),
        ('pdfsup', ctypes.c_int * 2),
        ('idwtup', ctypes.c_int),
        ('nprup', ctypes.c_int),
        ('xsecup', ctypes.c_double * 100),
        ('xerrup', ctypes.c_double * 100),
        ('xmaxup', ctypes.c_double * 100),
        ('lprup', ctypes.c_int * 100),
    ]


_CHARYBDIS_BLOCKS: Dict[str, Type[ctypes.Structure]] = {'bhparm': _BhParm, 'bh1003': _Bh1003}
_CHARYBDIS_LOGICALS = frozenset({'timvar', 'gtsca', 'grybdy', 'kincut'})


class CharybdisMixin:
    """CHARYBDIS parameters and run set-up, mixed into a host engine adapter."""

    _charybdis_commons: Dict[str, ctypes.Structure]

    def _bind_charybdis(self, lib: NativeLibrary) -> None:
        self._charybdis_commons = {
            name: lib.common_block(fortran_symbol(name), struct) for name, struct in _CHARYBDIS_BLOCKS.items()
        }
        self._heprup = lib.common_block(fortran_symbol('HEPRUP'), _HepRup)

    @property
    def charybdis_version(self) -> str:
        return CHARYBDIS_VERSION

    def _coerce_charybdis_param(self, key: str, value: str, host_coerce) -> Any:
        try:
            return coerce_common_value(_CHARYBDIS_BLOCKS, key, value, self.name,  # type: ignore[attr-defined]
                                       logicals=_CHARYBDIS_LOGICALS)
        except UnknownParameterError:
            return host_coerce(key, value)

    def _apply_charybdis_params(self, beams: Tuple[Any, Any], params: Sequence[Tuple[str, Any]]) -> None:
        beam_a, beam_b = beams
        self._heprup.idbmup[0] = int(beam_a.kind)
        self._heprup.idbmup[1] = int(beam_b.kind)
        self._heprup.ebmup[0] = beam_a.momentum
        self._heprup.ebmup[1] = beam_b.momentum
        for _, setting in params:
            if isinstance(setting, CommonSetting) and setting.block in self._charybdis_commons:
                apply_common_setting(self._charybdis_commons, setting)


class CharybdisFPythiaGenerator(CharybdisMixin, FPythiaGenerator):
    """CHARYBDIS hard process with PYTHIA 6 showering and hadronisation."""

    NAME = 'charybdis_fpythia'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('pythia6', 'charybdis')
    SUPPORTED_BEAMS = HADRON_BEAMS

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        super().__init__(libraries)
        self._bind_charybdis(self.library('charybdis'))

    @property
    @override
    def version(self) -> str:
        return f"{self.charybdis_version}+pythia{super().version}"

    @override
    def _coerce_param(self, key: str, value: str) -> Any:
        return self._coerce_charybdis_param(key, value, super()._coerce_param)

    @override
    def _pythia_frame(self) -> Tuple[str, float]:
        return 'USER', 0.0

    @override
    def _initialize(self) -> None:
        assert self._beams is not None
        self._apply_charybdis_params(self._beams, self._params)
        super()._initialize()


class CharybdisFHerwigGenerator(CharybdisMixin, FHerwigGenerator):
    """CHARYBDIS hard process with HERWIG 6 showering and hadronisation."""

    NAME = 'charybdis_fherwig'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('herwig', 'charybdis')
    SUPPORTED_BEAMS = HADRON_BEAMS

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        super().__init__(libraries)
        self._bind_charybdis(self.library('charybdis'))

    @property
    @override
    def version(self) -> str:
        return f"{self.charybdis_version}+herwig{super().version}"

    @override
    def _coerce_param(self, key: str, value: str) -> Any:
        setting = self._coerce_charybdis_param(key, value, super()._coerce_param)
        # The hard process is CHARYBDIS; HERWIG must not be switched to another one
        if isinstance(setting, CommonSetting) and setting.field == 'iproc' and setting.value != CHARYBDIS_IPROC:
            raise InvalidValueError(key, value, f"{CHARYBDIS_IPROC}, the CHARYBDIS process")
        return setting

    @override
    def _process_code(self) -> int:
        return CHARYBDIS_IPROC

    @override
    def _before_params(self) -> None:
        super()._before_params()
        assert self._beams is not None
        self._apply_charybdis_params(self._beams, self._params)


class CharybdisFHerwigJimmyGenerator(CharybdisFHerwigGenerator, FHerwigJimmyGenerator):
    """CHARYBDIS with HERWIG 6 and JIMMY multiple interactions."""

    NAME = 'charybdis_fherwigjimmy'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('herwig', 'jimmy', 'charybdis')
