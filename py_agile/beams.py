"""Beam particles and beam specification strings.

Two forms are accepted:

- Explicit beams: `NAME:ENERGY,NAME:ENERGY`, e.g. `p:900,pbar:900` or `e-:27.5,p:920`.
  Each ENERGY is the beam momentum.
- A collider preset, optionally with the centre-of-mass energy: `LHC`, `LHC:14000`,
  `TVT:1.96T`. Symmetric colliders split the energy evenly between the beams; HERA
  uses the fixed beam energies of its run periods.

Energies are floats with an optional magnitude suffix (K=1e-6, M=1e-3, G=1, T=1e3,
relative to GeV) and an optional `eV`, so `14000`, `14T` and `14TeV` are equivalent. A bare `eV` with no
magnitude means electronvolts: `900eV` is 9e-7 GeV.

Examples:
    >>> parse_beams("LHC:14000")
    (BeamSpec(kind=<ParticleKind.PROTON: 2212>, momentum=7000.0), BeamSpec(kind=<ParticleKind.PROTON: 2212>, momentum=7000.0))
    >>> parse_energy("1.96T")
    1960.0
"""
import re
from enum import IntEnum

from typing_extensions import Dict, NamedTuple, Optional, Tuple

from py_agile.exceptions import ConfigurationError

__all__ = (
    'ParticleKind',
    'BeamSpec',
    'BeamPair',
    'COLLIDERS',
    'parse_particle',
    'parse_energy',
    'parse_beams',
)


class ParticleKind(IntEnum):
    """Beam particle kinds, valued by PDG code."""

    PROTON = 2212
    ANTIPROTON = -2212
    ELECTRON = 11
    POSITRON = -11


class BeamSpec(NamedTuple):
    """One incoming beam: particle kind and momentum in GeV."""

    kind: ParticleKind
    momentum: float


BeamPair = Tuple[BeamSpec, BeamSpec]

_PARTICLE_ALIASES: Dict[str, ParticleKind] = {
    'P': ParticleKind.PROTON,
    'P+': ParticleKind.PROTON,
    'PROTON': ParticleKind.PROTON,
    '2212': ParticleKind.PROTON,
    'PBAR': ParticleKind.ANTIPROTON,
    'PBAR-': ParticleKind.ANTIPROTON,
    'P-': ParticleKind.ANTIPROTON,
    'ANTIPROTON': ParticleKind.ANTIPROTON,
    '-2212': ParticleKind.ANTIPROTON,
    'E': ParticleKind.ELECTRON,
    'E-': ParticleKind.ELECTRON,
    'ELECTRON': ParticleKind.ELECTRON,
    '11': ParticleKind.ELECTRON,
    'E+': ParticleKind.POSITRON,
    'POSITRON': ParticleKind.POSITRON,
    '-11': ParticleKind.POSITRON,
}

_ENERGY_RE = re.compile(r'^((?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)([KkMmGgTt])?(eV|EV|ev)?$')
_MAGNITUDE = {'K': 1e-6, 'M': 1e-3, 'G': 1.0, 'T': 1e3}
_ELECTRONVOLT = 1e-9


class _Collider(NamedTuple):
    beam_a: ParticleKind
    beam_b: ParticleKind
    default_energy: float


COLLIDERS: Dict[str, _Collider] = {
    'LHC': _Collider(ParticleKind.PROTON, ParticleKind.PROTON, 14000.0),
    'TEVATRON': _Collider(ParticleKind.PROTON, ParticleKind.ANTIPROTON, 1960.0),
    'TVT': _Collider(ParticleKind.PROTON, ParticleKind.ANTIPROTON, 1960.0),
    'SPS': _Collider(ParticleKind.PROTON, ParticleKind.ANTIPROTON, 630.0),
    'RHIC': _Collider(ParticleKind.PROTON, ParticleKind.PROTON, 200.0),
    'ISR': _Collider(ParticleKind.PROTON, ParticleKind.PROTON, 63.0),
    'LEP': _Collider(ParticleKind.ELECTRON, ParticleKind.POSITRON, 91.2),
    'HERA': _Collider(ParticleKind.ELECTRON, ParticleKind.PROTON, 318.0),
}

# (lower sqrt(s), upper sqrt(s), lepton GeV, proton GeV); the upper bound of the last row is inclusive
_HERA_RUNS = (
    (290.0, 299.0, 26.7, 820.0),
    (299.0, 310.0, 27.5, 820.0),
    (310.0, 330.0, 27.5, 920.0),
)


def parse_particle(name: str) -> ParticleKind:
    try:
        return _PARTICLE_ALIASES[name.strip().upper()]
    except KeyError:
        raise ConfigurationError(f"Unknown beam particle {name!r}") from None


def parse_energy(text: str) -> float:
    """Parse an energy string to GeV."""
    match = _ENERGY_RE.match(text.strip())
    if match is None:
        raise ConfigurationError(f"Cannot parse energy {text!r}")
    value, magnitude, unit = match.groups()
    if magnitude:
        scale = _MAGNITUDE[magnitude.upper()]
    else:
        # A bare number is GeV; a bare eV unit is electronvolts
        scale = _ELECTRONVOLT if unit else 1.0
    energy = float(value) * scale
    if energy <= 0:
        raise ConfigurationError(f"Energy must be positive, got {text!r}")
    return energy


def _hera_split(sqrt_s: float) -> Tuple[float, float]:
    for low, high, lepton, proton in _HERA_RUNS:
        if low <= sqrt_s < high or (sqrt_s == high and high == _HERA_RUNS[-1][1]):
            return lepton, proton
    raise ConfigurationError(
        f"No HERA beam configuration for sqrt(s) = {sqrt_s} GeV "
        f"(supported: {_HERA_RUNS[0][0]}-{_HERA_RUNS[-1][1]} GeV)")


def _parse_preset(name: str, energy: Optional[str]) -> Optional[BeamPair]:
    collider = COLLIDERS.get(name.strip().upper())
    if collider is None:
        return None
    sqrt_s = parse_energy(energy) if energy is not None else collider.default_energy
    if name.strip().upper() == 'HERA':
        lepton, proton = _hera_split(sqrt_s)
        return BeamSpec(collider.beam_a, lepton), BeamSpec(collider.beam_b, proton)
    return BeamSpec(collider.beam_a, sqrt_s / 2), BeamSpec(collider.beam_b, sqrt_s / 2)


def _parse_beam(token: str) -> BeamSpec:
    name, sep, energy = token.partition(':')
    if not sep or not energy.strip():
        raise ConfigurationError(f"Beam {token!r} must have the form NAME:ENERGY")
    return BeamSpec(parse_particle(name), parse_energy(energy))


def parse_beams(spec: str) -> BeamPair:
    """Parse a beam specification string into two beams.

    Raises:
        ConfigurationError: Unknown particle or collider, unparsable energy, wrong number of beams,
            or a HERA energy outside its run periods.
    """
    tokens = [t.strip() for t in spec.split(',')]
    if len(tokens) == 1:
        name, _, energy = tokens[0].partition(':')
        beams = _parse_preset(name, energy if energy else None)
        if beams is None:
            raise ConfigurationError(
                f"Unknown collider {name!r}; known: {', '.join(sorted(COLLIDERS))}")
        return beams
    if len(tokens) != 2:
        raise ConfigurationError(f"Beam specification {spec!r} must name exactly two beams")
    return _parse_beam(tokens[0]), _parse_beam(tokens[1])
