"""Status-based event record filtering.

Filtering never rewrites links to grandparents: a dropped particle simply disappears
from its survivors' parent and child lists, and survivors keep their original indices.
`filter_record` is pure, idempotent and monotonic in the level.
"""
from enum import IntEnum

from typing_extensions import Dict, FrozenSet, Union

from py_agile.event import EventRecord, ParticleStatus

__all__ = ('FilterLevel', 'filter_record', 'kept_statuses')


class FilterLevel(IntEnum):
    """Record filter levels.

    - NONE (0): Record is returned unchanged
    - PHYSICAL (1): Keep STABLE, DECAYED, DECAYED_INTERMEDIATE and BEAM particles
    - STRICT (2): As PHYSICAL, without DECAYED_INTERMEDIATE
    """

    NONE = 0
    PHYSICAL = 1
    STRICT = 2


_PHYSICAL = frozenset({
    ParticleStatus.STABLE,
    ParticleStatus.DECAYED,
    ParticleStatus.DECAYED_INTERMEDIATE,
    ParticleStatus.BEAM,
})

_KEPT: Dict[FilterLevel, FrozenSet[ParticleStatus]] = {
    FilterLevel.NONE: frozenset(ParticleStatus),
    FilterLevel.PHYSICAL: _PHYSICAL,
    FilterLevel.STRICT: _PHYSICAL - {ParticleStatus.DECAYED_INTERMEDIATE},
}


def kept_statuses(level: Union[FilterLevel, int]) -> FrozenSet[ParticleStatus]:
    return _KEPT[FilterLevel(level)]


def filter_record(record: EventRecord, level: Union[FilterLevel, int] = FilterLevel.NONE) -> EventRecord:
    """Return the sub-record of particles whose status survives `level`.

    Raises:
        ValueError: `level` is not a FilterLevel value.
    """
    level = FilterLevel(level)
    if level == FilterLevel.NONE:
        return record
    keep = _KEPT[level]
    survivors = {p.index for p in record if p.status in keep}
    return record.replace_particles([
        p._replace(parents=tuple(i for i in p.parents if i in survivors),
                   children=tuple(i for i in p.children if i in survivors))
        for p in record if p.index in survivors
    ])
