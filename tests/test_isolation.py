import pytest

from py_agile.driver import ExitCode, RunDriver, RunStatus
from py_agile.exceptions import NativeFault, StateError, UnknownGeneratorError, UnknownParameterError
from py_agile.interface import GeneratorRegistry, create
from py_agile.isolation import IsolatedGenerator
from py_agile.params import ParameterDictionary

pytestmark = pytest.mark.extended


@pytest.fixture
def isolated_toy(tmp_path):
    generator = create('toy', [tmp_path], isolate=True)
    yield generator
    if not generator.finalized:
        generator.finalize()


def test_events_from_child(isolated_toy, lhc_beams, recording_writer):
    assert isinstance(isolated_toy, IsolatedGenerator)
    assert isolated_toy.name == 'toy'
    assert isolated_toy.version == '1.0.0'
    assert GeneratorRegistry.live() is isolated_toy
    result = RunDriver(isolated_toy, beams=lhc_beams, seed=2, num_events=3, writer=recording_writer).run()
    assert result.status is RunStatus.COMPLETED
    assert [r.event_number for r in recording_writer.records] == [1, 2, 3]
    assert recording_writer.records[0].dangling_references() == []
    assert result.cross_section == pytest.approx(1e10)
    assert isolated_toy.finalized
    assert GeneratorRegistry.live() is None


def test_errors_cross_the_process_boundary(isolated_toy):
    with pytest.raises(UnknownParameterError) as excinfo:
        isolated_toy.set_param('bogus', '1')
    assert excinfo.value.key == 'bogus'
    isolated_toy.finalize()
    with pytest.raises(StateError):
        isolated_toy.generate_event()


def test_crash_reported_as_native_fault(isolated_toy, lhc_beams):
    isolated_toy.set_initial_state(*lhc_beams)
    isolated_toy.set_param('crash_at_event', '2')
    assert isolated_toy.generate_event()
    with pytest.raises(NativeFault) as excinfo:
        isolated_toy.generate_event()
    assert excinfo.value.exitcode == 134
    isolated_toy.finalize()
    assert GeneratorRegistry.live() is None


def test_crash_during_run(isolated_toy):
    params = ParameterDictionary({'crash_at_event': '3'})
    result = RunDriver(isolated_toy, beams='LHC', params=params, num_events=5).run()
    assert result.exit_code == ExitCode.NATIVE_FAULT
    assert result.generated == 2
    assert "exit code 134" in result.message
    assert isolated_toy.finalized


def test_unknown_generator_in_child(tmp_path):
    with pytest.raises(UnknownGeneratorError):
        IsolatedGenerator('nosuch', [tmp_path])
