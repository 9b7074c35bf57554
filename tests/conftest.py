import logging

import pytest

from py_agile.beams import BeamSpec, ParticleKind
from py_agile.event import EventRecord, ParticleStatus
from py_agile.generators import toy
from py_agile.interface import GeneratorRegistry
from py_agile.logger import logger

from fixtures_and_helpers import FakeHerwig, FakeLibrary, FakePythia, RecordingWriter, make_particle

logger.setLevel(logging.DEBUG)


def pytest_configure(config):
    config.addinivalue_line("markers", "extended: slower tests that spawn processes or scan entry points")


@pytest.fixture(autouse=True)
def clean_registry():
    """Every test starts with no live generator and no runtime registrations."""
    registered = dict(GeneratorRegistry._registered)
    GeneratorRegistry._live = None
    yield
    GeneratorRegistry._live = None
    GeneratorRegistry._registered.clear()
    GeneratorRegistry._registered.update(registered)
    toy.toyend()


@pytest.fixture
def lhc_beams():
    return BeamSpec(ParticleKind.PROTON, 7000.0), BeamSpec(ParticleKind.PROTON, 7000.0)


@pytest.fixture
def cascade_record():
    """Beams -> partons -> string -> hadrons, with a decayed pi0 and a documentation line."""
    S = ParticleStatus
    return EventRecord([
        make_particle(1, 2212, S.BEAM, children=(3,), e=7000.0),
        make_particle(2, 2212, S.BEAM, children=(4,), e=7000.0),
        make_particle(3, 21, S.DECAYED_INTERMEDIATE, parents=(1,), children=(5,)),
        make_particle(4, 21, S.DECAYED_INTERMEDIATE, parents=(2,), children=(5,)),
        make_particle(5, 92, S.INTERMEDIATE, parents=(3, 4), children=(6, 7, 8)),
        make_particle(6, 211, S.STABLE, parents=(5,)),
        make_particle(7, -211, S.STABLE, parents=(5,)),
        make_particle(8, 111, S.DECAYED, parents=(5,), children=(9, 10)),
        make_particle(9, 22, S.STABLE, parents=(8,)),
        make_particle(10, 22, S.STABLE, parents=(8,)),
        make_particle(11, 21, S.DOCUMENTATION),
    ], event_number=1)


@pytest.fixture
def fake_pythia():
    return FakePythia()


@pytest.fixture
def fake_herwig():
    return FakeHerwig()


@pytest.fixture
def fake_charybdis():
    return FakeLibrary('charybdis')


@pytest.fixture
def recording_writer():
    return RecordingWriter()

