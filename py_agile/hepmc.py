"""HepMC3 Asciiv3 event output.

Event records are particle graphs; HepMC3 describes events as particles joined by
vertices. Vertices are recovered from the graph: particles that share a child share an
end vertex, and every child of a vertex's incoming particles is one of its outgoing
particles. Particles are written in topological order with HepMC ids 1..N, so every
vertex and parent reference points backwards in the listing.

Output layout:
    ```
    HepMC::Version 3.02.06
    HepMC::Asciiv3-START_EVENT_LISTING
    E 1 3 10
    U GEV MM
    W 1
    P 1 0 2212 0 0 7000 7000 0.938272 4
    ...
    V -1 0 [3,4]
    P 5 -1 92 ...
    HepMC::Asciiv3-END_EVENT_LISTING
    ```

The stream is flushed after every event, so an interrupted or aborted run leaves only
complete events behind.
"""
import sys
from pathlib import Path

from typing_extensions import Dict, List, TextIO, Tuple, Union

from py_agile.event import EventRecord, Particle
from py_agile.logger import logger

__all__ = ('HepMCWriter', 'HEPMC_VERSION', 'open_writer')

HEPMC_VERSION = "3.02.06"
_START = "HepMC::Asciiv3-START_EVENT_LISTING"
_END = "HepMC::Asciiv3-END_EVENT_LISTING"


class _DisjointSet:
    def __init__(self) -> None:
        self._parent: Dict[int, int] = {}

    def find(self, x: int) -> int:
        self._parent.setdefault(x, x)
        while self._parent[x] != x:
            self._parent[x] = self._parent[self._parent[x]]
            x = self._parent[x]
        return x

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self._parent[rb] = ra


def _end_vertices(record: EventRecord) -> Tuple[_DisjointSet, Dict[int, List[int]]]:
    """Group particles into end vertices; returns the grouping and each vertex's incoming particles."""
    groups = _DisjointSet()
    for p in record:
        for parent in p.parents[1:]:
            groups.union(p.parents[0], parent)
    members: Dict[int, List[int]] = {}
    for p in record:
        if p.children:
            members.setdefault(groups.find(p.index), []).append(p.index)
    return groups, members


def _topological_order(record: EventRecord, groups: _DisjointSet, members: Dict[int, List[int]]) -> List[Particle]:
    """Order particles so that all incoming particles of a vertex precede its outgoing ones."""
    position = {p.index: i for i, p in enumerate(record)}
    remaining = {root: len(indices) for root, indices in members.items()}
    ready = [p.index for p in record if not p.parents]
    ordered: List[Particle] = []
    seen = set()
    while ready:
        ready.sort(key=position.__getitem__)
        index = ready.pop(0)
        seen.add(index)
        ordered.append(record[index])
        if not record[index].children:
            continue
        root = groups.find(index)
        remaining[root] -= 1
        if remaining[root] == 0:
            outgoing = {c for m in members[root] for c in record[m].children}
            ready.extend(c for c in outgoing if c not in seen)
    if len(ordered) != len(record):
        logger.warning(f"Event {record.event_number}: particle graph has a cycle, keeping record order for "
                       f"{len(record) - len(ordered)} particles")
        ordered.extend(p for p in record if p.index not in seen)
    return ordered


class HepMCWriter:
    """Write event records as HepMC3 Asciiv3 text.

    Args:
        stream: Text stream to write to.
        precision: Significant digits for momenta and masses.
    """

    def __init__(self, stream: TextIO, precision: int = 12, close_stream: bool = False):
        if precision < 1:
            raise ValueError(f"precision must be positive, got {precision}")
        self.stream = stream
        self.precision = precision
        self.events_written = 0
        self._close_stream = close_stream
        self._closed = False
        self.stream.write(f"HepMC::Version {HEPMC_VERSION}\n{_START}\n")
        self.stream.flush()

    def __enter__(self) -> 'HepMCWriter':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _num(self, value: float) -> str:
        return f"{value:.{self.precision}g}"

    def format_event(self, record: EventRecord) -> str:
        groups, members = _end_vertices(record)
        ordered = _topological_order(record, groups, members)
        hepmc_id = {p.index: i for i, p in enumerate(ordered, 1)}
        incoming = {root: sorted(hepmc_id[i] for i in indices) for root, indices in members.items()}
        vertex_id: Dict[int, int] = {}

        lines = []
        body = []
        for p in ordered:
            origin = 0
            if p.parents:
                root = groups.find(p.parents[0])
                parents_in = incoming[root]
                if root not in vertex_id:
                    # Vertices are numbered -1, -2, ... in order of first use; single-parent
                    # vertices are implicit in the particle line
                    vertex_id[root] = -(len(vertex_id) + 1)
                    if len(parents_in) > 1:
                        body.append(f"V {vertex_id[root]} 0 [{','.join(str(i) for i in parents_in)}]")
                origin = parents_in[0] if len(parents_in) == 1 else vertex_id[root]
            m = p.momentum
            body.append(f"P {hepmc_id[p.index]} {origin} {p.pdg_id} {self._num(m.px)} {self._num(m.py)} "
                        f"{self._num(m.pz)} {self._num(m.e)} {self._num(p.mass)} {int(p.status)}")

        num_vertices = len(incoming)
        lines.append(f"E {record.event_number} {num_vertices} {len(ordered)}")
        lines.append("U GEV MM")
        lines.append("W " + " ".join(self._num(w) for w in record.weights))
        lines.extend(body)
        return "\n".join(lines) + "\n"

    def write(self, record: EventRecord) -> None:
        if self._closed:
            raise ValueError("write to a closed HepMCWriter")
        self.stream.write(self.format_event(record))
        self.stream.flush()
        self.events_written += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.stream.write(f"{_END}\n")
        self.stream.flush()
        if self._close_stream:
            self.stream.close()


def open_writer(output: Union[str, Path, None], precision: int = 12) -> HepMCWriter:
    """Open a writer on a file, or on stdout for None or '-'."""
    if output is None or str(output) == '-':
        return HepMCWriter(sys.stdout, precision)
    return HepMCWriter(open(output, 'w'), precision, close_stream=True)
