"""Pure-Python reference generator.

`toy` behaves like one of the native engines without needing any shared library: its
state is process-global (module level), it works in MeV and numbers particles from 1 with
its own status codes, and it can be made to fail or crash on a given event. It is the
generator used by the test suite and is always available.

Event layout:
    1, 2     incoming beams (native status 4)
    3, 4     incoming gluons, one per beam (11)
    5        string spanned by both gluons, so it has two parents (12)
    6 ...    hadrons from the string (1, or 2 for decayed pi0 with their photons)
    last     documentation copy of the hard scattering (3)

Parameters (case-insensitive):
    nmult           mean charged+neutral hadron multiplicity (int, default 10)
    ptscale         mean transverse momentum in GeV (float, default 0.5)
    ymax            rapidity range (float, default 5.0)
    fail_rate       probability that an event is reported as failed (float, default 0)
    sigma           cross-section reported in pb (float, default 1e10)
    fault_at_event  raise an OS-level fault on this event (int, default 0 = never)
    crash_at_event  terminate the process on this event (int, default 0 = never)
"""
import math
import os

import numpy as np
from typing_extensions import Any, Dict, List, Optional, Tuple, override

from py_agile.event import EventRecordBuilder, ParticleStatus
from py_agile.exceptions import InvalidValueError, StateError, UnknownParameterError
from py_agile.generators.base_generator import ANY_BEAMS, BaseGenerator
from py_agile.logger import logger

__all__ = ('ToyGenerator',)

TOY_VERSION = "1.0.0"

_STATUS_MAP = {
    1: ParticleStatus.STABLE,
    2: ParticleStatus.DECAYED,
    3: ParticleStatus.DOCUMENTATION,
    4: ParticleStatus.BEAM,
    11: ParticleStatus.DECAYED_INTERMEDIATE,
    12: ParticleStatus.INTERMEDIATE,
}

# PDG id -> mass in MeV
_HADRONS: Dict[int, float] = {
    211: 139.570,
    -211: 139.570,
    111: 134.977,
    321: 493.677,
    -321: 493.677,
    2212: 938.272,
    -2212: 938.272,
    22: 0.0,
}
_HADRON_IDS = np.array([211, -211, 111, 211, -211, 111, 321, -321, 2212, -2212])

_DEFAULTS: Dict[str, Any] = {
    'nmult': 10,
    'ptscale': 0.5,
    'ymax': 5.0,
    'fail_rate': 0.0,
    'sigma': 1e10,
    'fault_at_event': 0,
    'crash_at_event': 0,
}

# (index, pdg, px, py, pz, e, mass, status, mothers, daughters), MeV
_Entry = Tuple[int, int, float, float, float, float, float, int, Tuple[int, ...], Tuple[int, ...]]

# Engine state, shared by everything in the process
_params: Dict[str, Any] = {}
_rng: Optional[np.random.Generator] = None
_beams: Tuple[float, float] = (0.0, 0.0)
_beam_ids: Tuple[int, int] = (0, 0)
_event: List[_Entry] = []
_nevent: int = 0
_ntried: int = 0


def toyini(beam_ids: Tuple[int, int], momenta_mev: Tuple[float, float], seed: int, params: Dict[str, Any]) -> None:
    global _rng, _beams, _beam_ids, _nevent, _ntried, _event
    if _rng is not None:
        raise StateError("toy engine is already initialised in this process")
    _params.clear()
    _params.update(_DEFAULTS)
    _params.update(params)
    _rng = np.random.default_rng(seed)
    _beams = momenta_mev
    _beam_ids = beam_ids
    _nevent = 0
    _ntried = 0
    _event = []


def _hadron(rng: np.random.Generator, pdg: int) -> Tuple[float, float, float, float, float]:
    mass = _HADRONS[pdg]
    pt = float(rng.exponential(_params['ptscale'] * 1e3))
    phi = float(rng.uniform(0.0, 2 * math.pi))
    y = float(rng.uniform(-_params['ymax'], _params['ymax']))
    mt = math.hypot(pt, mass)
    return pt * math.cos(phi), pt * math.sin(phi), mt * math.sinh(y), mt * math.cosh(y), mass


def _decay_pi0(rng: np.random.Generator, px: float, py: float, pz: float, e: float) -> List[Tuple[float, ...]]:
    # Two photons sharing the pi0 momentum, split along a random fraction
    z = float(rng.uniform(0.2, 0.8))
    return [(px * z, py * z, pz * z, e * z), (px * (1 - z), py * (1 - z), pz * (1 - z), e * (1 - z))]


def toyevt() -> int:
    """Generate one event into the module record. Returns 0 on success, else an error code."""
    global _event, _nevent, _ntried
    if _rng is None:
        raise StateError("toy engine is not initialised")
    _ntried += 1
    if _params['crash_at_event'] and _ntried == _params['crash_at_event']:
        os._exit(134)
    if _params['fault_at_event'] and _ntried == _params['fault_at_event']:
        raise OSError(f"toy engine: access violation in event {_ntried}")
    if _rng.random() < _params['fail_rate']:
        _event = []
        return 1

    pa, pb = _beams
    xa, xb = (float(x) for x in _rng.uniform(0.01, 0.2, 2))
    entries: List[_Entry] = [
        (1, _beam_ids[0], 0.0, 0.0, pa, math.hypot(pa, _HADRONS.get(abs(_beam_ids[0]), 0.511)),
         _HADRONS.get(abs(_beam_ids[0]), 0.511), 4, (), ()),
        (2, _beam_ids[1], 0.0, 0.0, -pb, math.hypot(pb, _HADRONS.get(abs(_beam_ids[1]), 0.511)),
         _HADRONS.get(abs(_beam_ids[1]), 0.511), 4, (), ()),
        (3, 21, 0.0, 0.0, xa * pa, xa * pa, 0.0, 11, (1,), ()),
        (4, 21, 0.0, 0.0, -xb * pb, xb * pb, 0.0, 11, (2,), ()),
        (5, 92, 0.0, 0.0, xa * pa - xb * pb, xa * pa + xb * pb, 0.0, 12, (3, 4), ()),
    ]
    index = 5
    multiplicity = max(2, int(_rng.poisson(_params['nmult'])))
    for pdg in _rng.choice(_HADRON_IDS, multiplicity):
        pdg = int(pdg)
        px, py, pz, e, mass = _hadron(_rng, pdg)
        index += 1
        if pdg != 111:
            entries.append((index, pdg, px, py, pz, e, mass, 1, (5,), ()))
            continue
        # Daughters declared on the decaying side only
        parent = index
        photons = _decay_pi0(_rng, px, py, pz, e)
        entries.append((parent, pdg, px, py, pz, e, mass, 2, (5,), (index + 1, index + 2)))
        for gpx, gpy, gpz, ge in photons:
            index += 1
            entries.append((index, 22, gpx, gpy, gpz, ge, 0.0, 1, (), ()))
    index += 1
    entries.append((index, 21, 0.0, 0.0, xa * pa, xa * pa, 0.0, 3, (), ()))

    _event = entries
    _nevent += 1
    return 0


def toyrec() -> List[_Entry]:
    return list(_event)


def toystat() -> Tuple[int, int, float]:
    """(accepted, tried, cross-section in pb)."""
    return _nevent, _ntried, _params.get('sigma', _DEFAULTS['sigma'])


def toyend() -> None:
    global _rng, _event
    _rng = None
    _event = []


class ToyGenerator(BaseGenerator):
    """Adapter over the reference engine in this module."""

    NAME = 'toy'
    NATIVE_LIBRARIES = ()
    SUPPORTED_BEAMS = ANY_BEAMS
    STATUS_MAP = _STATUS_MAP
    MOMENTUM_UNIT = 1e-3

    _PARAM_TYPES = {
        'nmult': int,
        'ptscale': float,
        'ymax': float,
        'fail_rate': float,
        'sigma': float,
        'fault_at_event': int,
        'crash_at_event': int,
    }

    @property
    @override
    def version(self) -> str:
        return TOY_VERSION

    @property
    @override
    def cross_section(self) -> Optional[float]:
        if not self._initialized or self._finalized:
            return None
        return toystat()[2]

    @override
    def _coerce_param(self, key: str, value: str) -> Any:
        name = key.lower()
        kind = self._PARAM_TYPES.get(name)
        if kind is None:
            raise UnknownParameterError(key, self.name)
        try:
            converted = kind(value)
        except ValueError:
            raise InvalidValueError(key, value, kind.__name__) from None
        if converted < 0 or (name == 'fail_rate' and converted > 1):
            raise InvalidValueError(key, value, "a value in [0, 1]" if name == 'fail_rate' else "a non-negative value")
        return name, converted

    @override
    def _initialize(self) -> None:
        assert self._beams is not None
        beam_a, beam_b = self._beams
        toyini((int(beam_a.kind), int(beam_b.kind)),
               (beam_a.momentum / self.MOMENTUM_UNIT, beam_b.momentum / self.MOMENTUM_UNIT),
               self._seed, dict(v for _, v in self._params))

    @override
    def _generate(self) -> bool:
        return toyevt() == 0

    @override
    def _fill_record(self, builder: EventRecordBuilder) -> None:
        for index, pdg, px, py, pz, e, mass, status, mothers, daughters in toyrec():
            builder.add(index, pdg, px, py, pz, e, status, mothers, daughters, mass=mass)

    @override
    def _finalize_native(self) -> None:
        accepted, tried, sigma = toystat()
        toyend()
        logger.info(f"toy: {accepted} of {tried} events accepted, sigma = {sigma:.4g} pb")
