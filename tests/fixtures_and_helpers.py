from py_agile.event import FourMomentum, Particle
from py_agile.generators.hepevt import HepEvt


def make_particle(index, pdg_id, status, parents=(), children=(), e=1.0):
    return Particle(index, pdg_id, FourMomentum(0.0, 0.0, 0.0, e), 0.0, status, tuple(parents), tuple(children))


class FakeLibrary:
    """Stands in for a loaded NativeLibrary: routines are Python callables, common blocks
    are real ctypes structures allocated in memory."""

    def __init__(self, stem, routines=None):
        self.stem = stem
        self.routines = dict(routines or {})
        self.blocks = {}
        self.calls = []

    def function(self, name, argtypes=None, restype=None):
        impl = self.routines.get(name, lambda *args: None)

        def call(*args):
            self.calls.append(name)
            return impl(*args)
        return call

    def common_block(self, name, struct_type):
        if name not in self.blocks:
            self.blocks[name] = struct_type()
        return self.blocks[name]


def fill_hepevt(hepevt: HepEvt, entries, event_number=1):
    """entries: (status, pdg, (jmo1, jmo2), (jda1, jda2), (px, py, pz, e, m))"""
    hepevt.nevhep = event_number
    hepevt.nhep = len(entries)
    for i, (status, pdg, jmo, jda, p) in enumerate(entries):
        hepevt.isthep[i] = status
        hepevt.idhep[i] = pdg
        hepevt.jmohep[i][0], hepevt.jmohep[i][1] = jmo
        hepevt.jdahep[i][0], hepevt.jdahep[i][1] = jda
        for j, value in enumerate(p):
            hepevt.phep[i][j] = value


PYTHIA_EVENT = [
    (3, 2212, (0, 0), (3, 0), (0.0, 0.0, 7000.0, 7000.0, 0.938)),
    (3, 2212, (0, 0), (4, 0), (0.0, 0.0, -7000.0, 7000.0, 0.938)),
    (3, 21, (1, 0), (5, 0), (0.0, 0.0, 70.0, 70.0, 0.0)),
    (3, 21, (2, 0), (5, 0), (0.0, 0.0, -70.0, 70.0, 0.0)),
    (2, 92, (3, 4), (6, 8), (0.0, 0.0, 0.0, 140.0, 140.0)),
    (1, 211, (5, 0), (0, 0), (1.0, 0.0, 30.0, 30.02, 0.1396)),
    (1, -211, (5, 0), (0, 0), (-1.0, 0.0, -30.0, 30.02, 0.1396)),
    (1, 22, (5, 0), (0, 0), (0.0, 0.5, 10.0, 10.01, 0.0)),
]


class FakePythia(FakeLibrary):
    def __init__(self, fail_events=()):
        super().__init__('pythia6')
        self.commands = []
        self.init_args = None
        self.fail_events = set(fail_events)
        self.nevents = 0
        self.routines.update({
            'pygive_': lambda raw, length: self.commands.append(raw.decode()),
            'pyinit_': self._pyinit,
            'pyevnt_': self._pyevnt,
        })

    def _pyinit(self, frame, beam, target, win, *lengths):
        self.init_args = (frame.decode(), beam.decode(), target.decode(), win._obj.value)
        pypars = self.blocks['pypars_']
        pypars.mstp[180], pypars.mstp[181] = 6, 428

    def _pyevnt(self):
        self.nevents += 1
        if self.nevents in self.fail_events:
            self.blocks['pydat1_'].mstu[23] = 1
            return
        fill_hepevt(self.blocks['hepevt_'], PYTHIA_EVENT, self.nevents)
        self.blocks['pypars_'].pari[0] = 1.5e-3
        self.blocks['pypars_'].pari[6] = 1.0


HERWIG_EVENT = [
    (101, 2212, (0, 0), (0, 0), (0.0, 0.0, 7000.0, 7000.0, 0.938)),
    (102, 2212, (0, 0), (0, 0), (0.0, 0.0, -7000.0, 7000.0, 0.938)),
    (121, 21, (1, 4), (0, 0), (0.0, 0.0, 50.0, 50.0, 0.0)),
    (122, 21, (2, 3), (0, 0), (0.0, 0.0, -50.0, 50.0, 0.0)),
    (183, 91, (3, 0), (0, 0), (0.0, 0.0, 0.0, 100.0, 100.0)),
    (1, 211, (5, 0), (0, 0), (2.0, 0.0, 20.0, 20.1, 0.1396)),
    (1, -211, (5, 0), (0, 0), (-2.0, 0.0, -20.0, 20.1, 0.1396)),
]


class FakeHerwig(FakeLibrary):
    def __init__(self, fail_events=()):
        super().__init__('herwig')
        self.fail_events = set(fail_events)
        self.nevents = 0
        self.snapshot = {}
        self.routines.update({
            'hwuinc_': self._hwuinc,
            'hwepro_': self._hwepro,
            'hwufne_': self._hwufne,
        })

    def _hwuinc(self):
        proc = self.blocks['hwproc_']
        self.snapshot = {
            'iproc': proc.iproc,
            'ptmin': self.blocks['hwhard_'].ptmin,
            'modpdf': tuple(self.blocks['hwpram_'].modpdf),
            'prvtx': self.blocks['hwpram_'].prvtx,
            'nrn': self.blocks['hwevnt_'].nrn[0],
            'maxpr': self.blocks['hwevnt_'].maxpr,
        }

    def _hwepro(self):
        self.nevents += 1
        if self.nevents in self.fail_events:
            self.blocks['hwevnt_'].ierror = 100

    def _hwufne(self):
        evnt = self.blocks['hwevnt_']
        if evnt.ierror == 0:
            fill_hepevt(self.blocks['hepevt_'], HERWIG_EVENT, self.nevents)
            evnt.evwgt = 0.25
            evnt.wgtsum += 0.25
            evnt.nwgts += 1


class FakeJimmy(FakeLibrary):
    def __init__(self, abort_events=()):
        super().__init__('jimmy')
        self.abort_events = set(abort_events)
        self.nevents = 0
        self.routines['hwmsct_'] = self._hwmsct

    def _hwmsct(self, abort):
        self.nevents += 1
        if self.nevents in self.abort_events:
            abort._obj.value = 1


class RecordingWriter:
    def __init__(self):
        self.records = []

    def write(self, record):
        self.records.append(record)

