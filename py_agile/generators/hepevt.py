"""HEPEVT common block layout and translation into event records.

Both Fortran engine families publish their events through the standard HEPEVT common
block (double precision, NMXHEP = 4000):

    COMMON/HEPEVT/NEVHEP,NHEP,ISTHEP(NMXHEP),IDHEP(NMXHEP),
   &              JMOHEP(2,NMXHEP),JDAHEP(2,NMXHEP),PHEP(5,NMXHEP),VHEP(4,NMXHEP)

Fortran arrays are column-major, so JMOHEP(2,NMXHEP) is a C array of NMXHEP pairs.
Entries are numbered from 1; pointer value 0 means "none".
"""
import ctypes

from typing_extensions import List, Tuple

from py_agile.event import EventRecordBuilder
from py_agile.logger import logger

__all__ = ('NMXHEP', 'HepEvt', 'mother_indices', 'daughter_indices', 'fill_builder')

NMXHEP = 4000


class HepEvt(ctypes.Structure):
    _fields_ = [
        ('nevhep', ctypes.c_int),
        ('nhep', ctypes.c_int),
        ('isthep', ctypes.c_int * NMXHEP),
        ('idhep', ctypes.c_int * NMXHEP),
        ('jmohep', (ctypes.c_int * 2) * NMXHEP),
        ('jdahep', (ctypes.c_int * 2) * NMXHEP),
        ('phep', (ctypes.c_double * 5) * NMXHEP),
        ('vhep', (ctypes.c_double * 4) * NMXHEP),
    ]


def _pointer_range(first: int, last: int) -> List[int]:
    if first <= 0:
        return []
    if last <= first:
        return [first]
    return list(range(first, last + 1))


def mother_indices(jmo: Tuple[int, int], as_range: bool = True) -> List[int]:
    """Mothers of one entry.

    With `as_range` JMOHEP(1)..JMOHEP(2) is a mother range (PYTHIA strings and clusters);
    otherwise only JMOHEP(1) is a mother (HERWIG stores colour partners in JMOHEP(2)).
    """
    first, last = jmo
    if not as_range:
        return [first] if first > 0 else []
    if last > 0 and last < first:
        return [first, last]
    return _pointer_range(first, last)


def daughter_indices(jda: Tuple[int, int]) -> List[int]:
    return _pointer_range(*jda)


def fill_builder(hepevt: HepEvt, builder: EventRecordBuilder, mother_range: bool = True,
                 use_daughters: bool = True, beam_lines: int = 0, beam_status: int = 4) -> int:
    """Copy the current HEPEVT content into `builder`. Returns the event number.

    The first `beam_lines` entries are given `beam_status`, for engines that store the
    incoming beams as ordinary documentation lines.
    """
    nhep = hepevt.nhep
    if nhep > NMXHEP:
        logger.warning(f"HEPEVT reports {nhep} entries, truncating to {NMXHEP}")
        nhep = NMXHEP
    for i in range(nhep):
        status = hepevt.isthep[i]
        if status == 0:
            continue
        if i < beam_lines:
            status = beam_status
        p = hepevt.phep[i]
        jmo = (hepevt.jmohep[i][0], hepevt.jmohep[i][1])
        jda = (hepevt.jdahep[i][0], hepevt.jdahep[i][1])
        builder.add(i + 1, hepevt.idhep[i], p[0], p[1], p[2], p[3], status,
                    parents=mother_indices(jmo, mother_range),
                    children=daughter_indices(jda) if use_daughters else (),
                    mass=p[4])
    return hepevt.nevhep
