"""HERWIG 6 adapter, with the JIMMY multiple-interaction variant.

HERWIG has no parameter-setting routine: it is configured by writing its common blocks
between HWIGIN (which loads the defaults) and HWUINC. The adapter therefore records
validated parameters and writes them at initialisation:

    beams -> HWBMCH/HWPROC, HWIGIN, [JIMMIN], parameters, seed, HWUINC, [JMINIT], HWEINI

Each event runs the standard chain HWUINE, HWEPRO, HWBGEN, HWDHOB, [HWMSCT], HWCFOR,
HWCDEC, HWDHAD, HWDHVY, HWMEVT, HWUFNE; HWEVNT's IERROR reports failures. HERWIG writes
colour partners into JMOHEP(2) and JDAHEP, so only JMOHEP(1) is used for the event graph.

Parameter keys are common-block variable names, with a 1-based index for vectors:
`PTMIN`, `IPROC`, `MODPDF(1)`, `CLPOW`, `PRVTX`. Matrix variables are not settable.
"""
import ctypes

from typing_extensions import Any, Dict, Optional, Sequence, Tuple, Type, override

from py_agile.beams import ParticleKind
from py_agile.event import EventRecordBuilder, ParticleStatus
from py_agile.generators.base_generator import ANY_BEAMS, BaseGenerator
from py_agile.generators.common_blocks import CommonSetting, apply_common_setting, coerce_common_value
from py_agile.generators.hepevt import NMXHEP, HepEvt, fill_builder
from py_agile.logger import logger
from py_agile.native import NativeLibrary, fortran_symbol

__all__ = (
    'FHerwigGenerator',
    'FHerwigJimmyGenerator',
    'HERWIG_BEAM_NAMES',
    'HERWIG_STATUS_MAP',
    'DEFAULT_IPROC',
)

c_double = ctypes.c_double
c_int = ctypes.c_int
c_logical = ctypes.c_int

DEFAULT_IPROC = 1500
HERWIG_VERSION = "6.510"

HERWIG_BEAM_NAMES = {
    ParticleKind.PROTON: 'P',
    ParticleKind.ANTIPROTON: 'PBAR',
    ParticleKind.ELECTRON: 'E-',
    ParticleKind.POSITRON: 'E+',
}

HERWIG_STATUS_MAP: Dict[int, ParticleStatus] = {code: ParticleStatus.INTERMEDIATE for code in range(4, 200)}
HERWIG_STATUS_MAP.update({
    1: ParticleStatus.STABLE,
    2: ParticleStatus.DECAYED,
    3: ParticleStatus.DOCUMENTATION,
    100: ParticleStatus.DOCUMENTATION,
    101: ParticleStatus.BEAM,
    102: ParticleStatus.BEAM,
    103: ParticleStatus.DOCUMENTATION,
    120: ParticleStatus.DOCUMENTATION,
    195: ParticleStatus.DECAYED,
    196: ParticleStatus.DECAYED,
    197: ParticleStatus.DECAYED,
    198: ParticleStatus.DECAYED,
    199: ParticleStatus.DECAYED,
})


def _doubles(*names: str) -> list:
    return [(n, c_double) for n in names]


class _HwBmch(ctypes.Structure):
    _fields_ = [('part1', ctypes.c_char * 8), ('part2', ctypes.c_char * 8)]


class _HwProc(ctypes.Structure):
    _fields_ = _doubles('ebeam1', 'ebeam2', 'pbeam1', 'pbeam2') + [('iproc', c_int), ('maxev', c_int)]


class _HwPram(ctypes.Structure):
    _fields_ = (
        [('afch', c_double * 32)]
        + _doubles('alphem', 'b1lim', 'betaf', 'btclm', 'cafac', 'cffac', 'clmax', 'clpow')
        + [('clsmr', c_double * 2)]
        + _doubles('cspeed', 'ensof', 'etamix', 'f0mix', 'f1mix', 'f2mix', 'gamh', 'gamw', 'gamz',
                   'gamzp', 'gev2nb', 'h1mix', 'pdiqk', 'pgsmx')
        + [('pgspl', c_double * 4)]
        + _doubles('phimix', 'pifac', 'prsof')
        + [('psplt', c_double * 2)]
        + _doubles('ptrms', 'pxrms', 'qcdl3', 'qcdl5', 'qcdlam', 'qdiqk')
        + [('qfch', c_double * 16)]
        + _doubles('qg', 'qspac', 'qv', 'scabi', 'swein', 'tmtop')
        + [('vfch', c_double * 32), ('vckm', c_double * 9)]
        + _doubles('vgcut', 'vqcut', 'vpcut', 'zbinm', 'effmin', 'omhmix', 'et2mix', 'ph3mix', 'gcutme')
        + [('ioprem', c_int), ('iprint', c_int), ('ispac', c_int), ('lrsud', c_int), ('lwsud', c_int),
           ('modpdf', c_int * 2), ('nbtry', c_int), ('ncolo', c_int), ('nctry', c_int), ('ndtry', c_int),
           ('netry', c_int), ('nflav', c_int), ('ngspl', c_int), ('nstru', c_int), ('nstry', c_int),
           ('nzbin', c_int), ('iop4jt', c_int * 2), ('nprfmt', c_int)]
        + [('azsoft', c_logical), ('azspin', c_logical), ('cldir', c_int * 2), ('hardme', c_logical),
           ('nospac', c_logical), ('prndec', c_logical), ('prvtx', c_logical), ('softme', c_logical),
           ('zprime', c_logical), ('prndef', c_logical), ('prntex', c_logical), ('prnweb', c_logical)]
    )


class _HwHard(ctypes.Structure):
    # Leading part of HWHARD, up to PTPOW
    _fields_ = (
        [('asfixd', c_double), ('clq', c_double * 42)]
        + _doubles('coss', 'costh', 'ctmax')
        + [('disf', c_double * 26)]
        + _doubles('emlst', 'emmax', 'emmin', 'empow', 'emsca')
        + [('epoln', c_double * 3), ('gcoef', c_double * 7)]
        + _doubles('gpoln', 'omega0', 'phomas')
        + [('ppoln', c_double * 3)]
        + _doubles('ptmax', 'ptmin', 'ptpow')
    )


class _HwEvnt(ctypes.Structure):
    _fields_ = (
        _doubles('avwgt', 'evwgt', 'gamwt', 'tlout', 'wbigst', 'wgtmax', 'wgtsum', 'wsqsum')
        + [('idhw', c_int * NMXHEP), ('ierror', c_int), ('istat', c_int), ('lwevt', c_int),
           ('maxer', c_int), ('maxpr', c_int), ('nowgt', c_logical), ('nrn', c_int * 2),
           ('numer', c_int), ('numeru', c_int), ('nwgts', c_int), ('gensof', c_logical)]
    )


class _JmParm(ctypes.Structure):
    # Leading part of JIMMY's JMPARM
    _fields_ = _doubles('ptjim', 'ygamma', 'jmzmin') + [('jmrad', c_double * 264)] + _doubles('phad')


_MATRIX_FIELDS = frozenset({'afch', 'clq', 'disf', 'vfch', 'vckm'})
_LOGICAL_FIELDS = frozenset({'azsoft', 'azspin', 'hardme', 'nospac', 'prndec', 'prvtx', 'softme', 'zprime',
                             'prndef', 'prntex', 'prnweb', 'nowgt', 'gensof'})
_EXCLUDED_FIELDS = _MATRIX_FIELDS | frozenset({'idhw', 'ierror', 'istat', 'avwgt', 'evwgt', 'gamwt', 'wbigst',
                                                'wgtsum', 'wsqsum', 'numer', 'numeru', 'nwgts', 'ebeam1', 'ebeam2',
                                                'pbeam1', 'pbeam2'})


_HERWIG_BLOCKS: Dict[str, Type[ctypes.Structure]] = {
    'hwproc': _HwProc,
    'hwpram': _HwPram,
    'hwhard': _HwHard,
    'hwevnt': _HwEvnt,
}


class FHerwigGenerator(BaseGenerator):
    """HERWIG 6 through its Fortran common blocks."""

    NAME = 'fherwig'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('herwig',)
    SUPPORTED_BEAMS = ANY_BEAMS
    STATUS_MAP = HERWIG_STATUS_MAP
    MOMENTUM_UNIT = 1.0

    # Blocks that can be written by parameters; JIMMY adds its own
    _COMMON_BLOCKS: Dict[str, Type[ctypes.Structure]] = _HERWIG_BLOCKS

    _EVENT_CHAIN = ('HWUINE', 'HWEPRO', 'HWBGEN', 'HWDHOB', 'HWCFOR', 'HWCDEC', 'HWDHAD', 'HWDHVY',
                    'HWMEVT', 'HWUFNE')

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        super().__init__(libraries)
        self._commons: Dict[str, ctypes.Structure] = {}
        self._routines: Dict[str, Any] = {}
        self._bind_herwig(self.library('herwig'))

    def _bind_herwig(self, lib: NativeLibrary) -> None:
        for routine in ('HWIGIN', 'HWUINC', 'HWEINI', 'HWEFIN') + self._EVENT_CHAIN:
            self._routines[routine] = lib.function(fortran_symbol(routine))
        for name, struct in _HERWIG_BLOCKS.items():
            self._commons[name] = lib.common_block(fortran_symbol(name), struct)
        self._hwbmch = lib.common_block(fortran_symbol('HWBMCH'), _HwBmch)
        self._hepevt = lib.common_block(fortran_symbol('HEPEVT'), HepEvt)

    def call(self, routine: str) -> None:
        self._routines[routine]()

    @property
    def hwevnt(self) -> _HwEvnt:
        return self._commons['hwevnt']

    @property
    @override
    def version(self) -> str:
        return HERWIG_VERSION

    @property
    @override
    def cross_section(self) -> Optional[float]:
        evnt = self.hwevnt
        if not self._initialized or evnt.nwgts <= 0:
            return None
        # Weights are in nb
        return evnt.wgtsum / evnt.nwgts * 1e3

    @override
    def _coerce_param(self, key: str, value: str) -> Any:
        return coerce_common_value(self._COMMON_BLOCKS, key, value, self.name,
                                   logicals=_LOGICAL_FIELDS, excluded=_EXCLUDED_FIELDS)

    def _set_beams(self) -> None:
        assert self._beams is not None
        beam_a, beam_b = self._beams
        self._hwbmch.part1 = HERWIG_BEAM_NAMES[beam_a.kind].ljust(8).encode('ascii')
        self._hwbmch.part2 = HERWIG_BEAM_NAMES[beam_b.kind].ljust(8).encode('ascii')
        proc = self._commons['hwproc']
        proc.pbeam1 = beam_a.momentum
        proc.pbeam2 = beam_b.momentum
        proc.iproc = self._process_code()
        # MAXEV is only a guard inside HERWIG; the run driver bounds the loop
        proc.maxev = 2 ** 31 - 1

    def _process_code(self) -> int:
        """IPROC to set before HWIGIN: the last IPROC parameter, else the default."""
        for _, setting in reversed(self._params):
            if isinstance(setting, CommonSetting) and setting.field == 'iproc':
                return setting.value
        return DEFAULT_IPROC

    def _apply_herwig_params(self) -> None:
        self.hwevnt.maxpr = 0
        for _, setting in self._params:
            if isinstance(setting, CommonSetting) and setting.block in self._commons:
                apply_common_setting(self._commons, setting)
        self.hwevnt.nrn[0] = self._seed

    def _before_params(self) -> None:
        pass

    def _after_uinc(self) -> None:
        pass

    @override
    def _initialize(self) -> None:
        self._set_beams()
        self.call('HWIGIN')
        self._before_params()
        self._apply_herwig_params()
        self.call('HWUINC')
        self._after_uinc()
        self.call('HWEINI')

    def _run_event_chain(self) -> None:
        for routine in self._EVENT_CHAIN:
            self.call(routine)

    @override
    def _generate(self) -> bool:
        self.hwevnt.ierror = 0
        self._run_event_chain()
        if self.hwevnt.ierror != 0:
            logger.warning(f"{self.name}: HERWIG error code {self.hwevnt.ierror}")
            return False
        return True

    @override
    def _fill_record(self, builder: EventRecordBuilder) -> None:
        fill_builder(self._hepevt, builder, mother_range=False, use_daughters=False)

    @override
    def _event_weights(self) -> Sequence[float]:
        return (self.hwevnt.evwgt or 1.0,)

    @override
    def _finalize_native(self) -> None:
        self.call('HWEFIN')


class FHerwigJimmyGenerator(FHerwigGenerator):
    """HERWIG 6 with JIMMY multiple parton interactions."""

    NAME = 'fherwigjimmy'
    NATIVE_LIBRARIES: Tuple[str, ...] = ('herwig', 'jimmy')

    _COMMON_BLOCKS = dict(FHerwigGenerator._COMMON_BLOCKS, jmparm=_JmParm)

    def __init__(self, libraries: Sequence[NativeLibrary] = ()) -> None:
        super().__init__(libraries)
        self._bind_jimmy(self.library('jimmy'))

    def _bind_jimmy(self, lib: NativeLibrary) -> None:
        self._routines['JIMMIN'] = lib.function(fortran_symbol('JIMMIN'))
        self._routines['JMINIT'] = lib.function(fortran_symbol('JMINIT'))
        self._routines['JMEFIN'] = lib.function(fortran_symbol('JMEFIN'))
        self._hwmsct = lib.function(fortran_symbol('HWMSCT'), [ctypes.POINTER(c_logical)])
        self._commons['jmparm'] = lib.common_block(fortran_symbol('JMPARM'), _JmParm)

    @override
    def _before_params(self) -> None:
        self.call('JIMMIN')

    @override
    def _after_uinc(self) -> None:
        self.call('JMINIT')

    @override
    def _run_event_chain(self) -> None:
        # HWMSCT adds the secondary scatters after heavy object decays
        for routine in self._EVENT_CHAIN:
            self.call(routine)
            if routine == 'HWDHOB':
                abort = c_logical(0)
                self._hwmsct(ctypes.byref(abort))
                if abort.value:
                    self.hwevnt.ierror = -1
                    self.call('HWUFNE')
                    return

    @override
    def _finalize_native(self) -> None:
        super()._finalize_native()
        self.call('JMEFIN')
