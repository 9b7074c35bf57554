"""Canonical event record model.

An `EventRecord` is an immutable directed acyclic graph of `Particle`s. Each generator
family fills an `EventRecordBuilder` from its own native particle list; the builder
normalises momenta to GeV, maps native status codes through the family's table and
makes the parent/child links symmetric. The resulting record no longer depends on the
engine that produced it.

Classes:
    ParticleStatus: Canonical status enumeration
    FourMomentum: (px, py, pz, e) in GeV
    Particle: One entry of an event record
    EventRecord: The particle DAG of one event
    EventRecordBuilder: Translates native entries into an EventRecord
"""
import math
from enum import IntEnum

from typing_extensions import Dict, Iterator, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from py_agile.logger import logger

__all__ = (
    'ParticleStatus',
    'FourMomentum',
    'Particle',
    'EventRecord',
    'EventRecordBuilder',
    'is_intermediate_pdg',
)


class ParticleStatus(IntEnum):
    """Canonical particle status.

    - UNKNOWN (0): Native code without a mapping
    - STABLE (1): Final-state, undecayed particle
    - DECAYED (2): Final-state-with-decay: a physical hadron or lepton decayed by the engine
    - DOCUMENTATION (3): Documentation-only entry, e.g. the hard process
    - BEAM (4): Incoming beam particle (documentation-beam)
    - DECAYED_INTERMEDIATE (11): Decayed parton-level object or heavy resonance
    - INTERMEDIATE (12): Beam remnants, shower, cluster and string internals
    """

    UNKNOWN = 0
    STABLE = 1
    DECAYED = 2
    DOCUMENTATION = 3
    BEAM = 4
    DECAYED_INTERMEDIATE = 11
    INTERMEDIATE = 12


class FourMomentum(NamedTuple):
    px: float
    py: float
    pz: float
    e: float

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def mass(self) -> float:
        m2 = self.e ** 2 - self.px ** 2 - self.py ** 2 - self.pz ** 2
        return math.copysign(math.sqrt(abs(m2)), m2)

    def scaled(self, factor: float) -> 'FourMomentum':
        return FourMomentum(self.px * factor, self.py * factor, self.pz * factor, self.e * factor)


class Particle(NamedTuple):
    index: int
    pdg_id: int
    momentum: FourMomentum
    mass: float
    status: ParticleStatus
    parents: Tuple[int, ...] = ()
    children: Tuple[int, ...] = ()


class EventRecord:
    """Immutable particle DAG of one event, indexed by particle identity."""

    __slots__ = ('_particles', 'event_number', 'weights')

    def __init__(self, particles: Sequence[Particle], event_number: int = 0,
                 weights: Sequence[float] = (1.0,)):
        self._particles: Dict[int, Particle] = {p.index: p for p in particles}
        self.event_number: int = event_number
        self.weights: Tuple[float, ...] = tuple(weights)

    def __len__(self) -> int:
        return len(self._particles)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self._particles.values())

    def __contains__(self, index: object) -> bool:
        return index in self._particles

    def __getitem__(self, index: int) -> Particle:
        return self._particles[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventRecord):
            return NotImplemented
        return (self.event_number == other.event_number and self.weights == other.weights
                and list(self._particles.values()) == list(other._particles.values()))

    def __repr__(self) -> str:
        return f"EventRecord(event_number={self.event_number}, particles={len(self)})"

    @property
    def particles(self) -> Tuple[Particle, ...]:
        return tuple(self._particles.values())

    def indices(self) -> frozenset:
        return frozenset(self._particles)

    def roots(self) -> List[Particle]:
        return [p for p in self if not p.parents]

    def final_state(self) -> List[Particle]:
        return [p for p in self if p.status == ParticleStatus.STABLE]

    def dangling_references(self) -> List[Tuple[int, int]]:
        """(particle, reference) pairs pointing outside the record or lacking the reverse link."""
        bad = []
        for p in self:
            for c in p.children:
                if c not in self._particles or p.index not in self._particles[c].parents:
                    bad.append((p.index, c))
            for m in p.parents:
                if m not in self._particles or p.index not in self._particles[m].children:
                    bad.append((p.index, m))
        return bad

    def replace_particles(self, particles: Sequence[Particle]) -> 'EventRecord':
        return EventRecord(particles, self.event_number, self.weights)


# Quarks, gluon, diquarks and generator-internal codes (clusters, strings, remnants)
_PARTON_CODES = frozenset(list(range(1, 9)) + [21] + list(range(81, 101)))
_HEAVY_RESONANCES = frozenset([6, 23, 24, 25, 32, 33, 34, 35, 36, 37])


def is_intermediate_pdg(pdg_id: int) -> bool:
    """True for partons, diquarks, generator-internal objects and heavy resonances."""
    code = abs(pdg_id)
    if code in _PARTON_CODES or code in _HEAVY_RESONANCES:
        return True
    # Diquarks: nq1 nq2 0 nJ with two non-zero quark digits and no third
    return 1000 <= code < 10000 and code % 100 // 10 == 0


class _NativeEntry(NamedTuple):
    index: int
    pdg_id: int
    momentum: FourMomentum
    mass: Optional[float]
    status: int
    parents: Tuple[int, ...]
    children: Tuple[int, ...]


class EventRecordBuilder:
    """Translate a native particle list into an EventRecord.

    Args:
        status_map: Native status code -> canonical status for this generator family.
        momentum_unit: Size of the native momentum unit in GeV (1e-3 for MeV engines).
        generator: Name used in log messages.

    Both halves of every native link are honoured: a link declared only on the parent side
    (daughter range) or only on the child side (mother range) appears on both particles.
    Links to entries that do not exist are dropped with a warning.
    """

    def __init__(self, status_map: Mapping[int, ParticleStatus], momentum_unit: float = 1.0,
                 generator: str = ''):
        self.status_map = status_map
        self.momentum_unit = momentum_unit
        self.generator = generator
        self._entries: List[_NativeEntry] = []

    def add(self, index: int, pdg_id: int, px: float, py: float, pz: float, e: float,
            status: int, parents: Sequence[int] = (), children: Sequence[int] = (),
            mass: Optional[float] = None) -> None:
        self._entries.append(_NativeEntry(index, pdg_id, FourMomentum(px, py, pz, e), mass,
                                          status, tuple(parents), tuple(children)))

    def __len__(self) -> int:
        return len(self._entries)

    def _status(self, entry: _NativeEntry) -> ParticleStatus:
        status = self.status_map.get(entry.status)
        if status is None:
            logger.debug(f"{self.generator}: unmapped native status {entry.status} for particle {entry.index}")
            return ParticleStatus.UNKNOWN
        if status == ParticleStatus.DECAYED and is_intermediate_pdg(entry.pdg_id):
            return ParticleStatus.DECAYED_INTERMEDIATE
        return status

    def build(self, event_number: int = 0, weights: Sequence[float] = (1.0,)) -> EventRecord:
        known = {e.index for e in self._entries}
        parents: Dict[int, List[int]] = {e.index: [] for e in self._entries}
        children: Dict[int, List[int]] = {e.index: [] for e in self._entries}

        def link(parent: int, child: int, declared_by: int) -> None:
            if parent not in known or child not in known:
                logger.warning(f"{self.generator}: event {event_number}: particle {declared_by} "
                               f"references missing entry {child if parent in known else parent}")
                return
            if parent == child:
                logger.warning(f"{self.generator}: event {event_number}: particle {parent} lists itself")
                return
            if child not in children[parent]:
                children[parent].append(child)
            if parent not in parents[child]:
                parents[child].append(parent)

        for entry in self._entries:
            for m in entry.parents:
                link(m, entry.index, entry.index)
            for d in entry.children:
                link(entry.index, d, entry.index)

        particles = []
        for entry in self._entries:
            momentum = entry.momentum.scaled(self.momentum_unit)
            mass = entry.mass * self.momentum_unit if entry.mass is not None else momentum.mass
            particles.append(Particle(entry.index, entry.pdg_id, momentum, mass, self._status(entry),
                                      tuple(parents[entry.index]), tuple(children[entry.index])))
        return EventRecord(particles, event_number, weights)
