import logging
import os
import signal

import pytest

from py_agile.beams import BeamSpec, ParticleKind
from py_agile.driver import (CancellationToken, ExitCode, RunDriver, RunStatus, exit_code_for,
                             handle_signals, resolve_beams, resolve_seed)
from py_agile.exceptions import (ConfigurationError, GenerationError, NativeFault, ParamFileError,
                                 StateError, UnknownParameterError)
from py_agile.filter import FilterLevel
from py_agile.generators.toy import ToyGenerator
from py_agile.params import ParameterDictionary


class CancellingWriter:
    """Cancels the run from inside the loop once `after` records are written."""

    def __init__(self, token, after):
        self.token = token
        self.after = after
        self.records = []

    def write(self, record):
        self.records.append(record)
        if len(self.records) == self.after:
            self.token.cancel(signal.SIGINT)


@pytest.fixture
def generator():
    generator = ToyGenerator()
    generator.finalize_calls = 0

    def count():
        generator.finalize_calls += 1

    generator.add_finalize_callback(count)
    return generator


def test_completed_run(generator, recording_writer, caplog):
    driver = RunDriver(generator, beams='LHC:14T', seed=5, num_events=10, writer=recording_writer)
    with caplog.at_level(logging.INFO, logger='py_agile'):
        result = driver.run()
    assert result.status is RunStatus.COMPLETED
    assert result.ok and result.exit_code == ExitCode.OK
    assert (result.generated, result.failed) == (10, 0)
    assert result.cross_section == pytest.approx(1e10)
    assert [r.event_number for r in recording_writer.records] == list(range(1, 11))
    assert driver.status is RunStatus.FINALIZED
    assert generator.finalized and generator.finalize_calls == 1
    assert "Cross-section: 1e+10 pb" in caplog.text
    assert "Generated 10 events" in caplog.text


def test_interrupted_after_four_events(generator):
    token = CancellationToken()
    writer = CancellingWriter(token, after=4)
    result = RunDriver(generator, beams='LHC', num_events=10, writer=writer, token=token).run()
    assert result.status is RunStatus.INTERRUPTED
    assert result.exit_code == ExitCode.OK
    assert result.generated == 4
    assert len(writer.records) == 4
    assert result.message == "Interrupted after 4 of 10 events"
    assert generator.finalize_calls == 1


def test_cancelled_before_start(generator):
    token = CancellationToken()
    token.cancel()
    result = RunDriver(generator, beams='LHC', token=token).run()
    assert result.status is RunStatus.INTERRUPTED
    assert result.generated == 0
    assert result.message == "Interrupted after 0 of unbounded events"
    assert token.signum is None


def test_configuration_order(generator, caplog):
    params = ParameterDictionary([('nmult', '4'), ('RG:Seed', '9'), ('ptscale', '1.5')])
    with caplog.at_level(logging.INFO, logger='py_agile'):
        RunDriver(generator, beams='LHC', params=params, num_events=1).run()
    messages = [r.getMessage() for r in caplog.records if r.getMessage().startswith(('Configuring', 'toy: '))]
    assert messages[:4] == [
        "Configuring toy: PROTON 7000 GeV + PROTON 7000 GeV",
        "toy: seed = 9",
        "toy: nmult = 4",
        "toy: ptscale = 1.5",
    ]


def test_filtered_output(generator, recording_writer):
    RunDriver(generator, beams='LHC', num_events=3, filter_level=FilterLevel.STRICT,
              writer=recording_writer).run()
    for record in recording_writer.records:
        assert all(p.pdg_id not in (21, 92) for p in record)
        assert record.dangling_references() == []


def test_failed_event_aborts(generator):
    params = ParameterDictionary({'fail_rate': '1'})
    result = RunDriver(generator, beams='LHC', params=params, num_events=5).run()
    assert result.status is RunStatus.ABORTED
    assert result.exit_code == ExitCode.GENERATION
    assert (result.generated, result.failed) == (0, 1)
    assert "event 1 failed" in result.message
    assert generator.finalize_calls == 1


def test_native_fault_skips_cross_section(generator):
    params = ParameterDictionary({'fault_at_event': '3'})
    result = RunDriver(generator, beams='LHC', params=params, num_events=5).run()
    assert result.status is RunStatus.ABORTED
    assert result.exit_code == ExitCode.NATIVE_FAULT
    assert result.generated == 2
    assert result.cross_section is None
    assert generator.finalize_calls == 1


def test_bad_parameter_finalizes(generator, recording_writer):
    params = ParameterDictionary({'nmult': '4', 'no_such_param': '1'})
    result = RunDriver(generator, beams='LHC', params=params, num_events=5, writer=recording_writer).run()
    assert result.status is RunStatus.ABORTED
    assert result.exit_code == ExitCode.CONFIGURATION
    assert "no_such_param" in result.message
    assert recording_writer.records == []
    assert generator.finalize_calls == 1


def test_beams_from_meta_parameters(generator):
    params = ParameterDictionary([('RG:Beam1', 'e-'), ('RG:Beam2', 'p+'), ('RG:Mom1', '27.5'),
                                  ('RG:Mom2', '920'), ('RG:Seed', '3')])
    driver = RunDriver(generator, params=params, num_events=1)
    driver.run()
    assert generator.beams == (BeamSpec(ParticleKind.ELECTRON, 27.5), BeamSpec(ParticleKind.PROTON, 920.0))
    assert generator.seed == 3
    assert driver.state.seed == 3


def test_explicit_seed_overrides_meta(generator):
    params = ParameterDictionary({'RG:Seed': '3'})
    RunDriver(generator, beams='LHC', params=params, seed=8, num_events=1).run()
    assert generator.seed == 8


@pytest.mark.parametrize("params", [
    {},
    {'RG:Beam1': 'p', 'RG:Mom1': '7000'},
    {'RG:Beam1': 'p', 'RG:Beam2': 'p', 'RG:Mom1': '7000', 'RG:Mom2': '7000', 'RG:Seed': 'abc'},
])
def test_meta_parameter_errors(generator, params):
    result = RunDriver(generator, params=ParameterDictionary(params), num_events=1).run()
    assert result.exit_code == ExitCode.CONFIGURATION
    assert result.generated == 0
    assert generator.finalized


def test_negative_event_count(generator):
    with pytest.raises(ConfigurationError):
        RunDriver(generator, beams='LHC', num_events=-1)


def test_run_only_once(generator):
    driver = RunDriver(generator, beams='LHC', num_events=1)
    driver.run()
    with pytest.raises(StateError):
        driver.run()


@pytest.mark.parametrize("error, code", [
    (ParamFileError('run.params', "not found"), ExitCode.PARAM_FILE),
    (UnknownParameterError('x', 'toy'), ExitCode.CONFIGURATION),
    (GenerationError("failed"), ExitCode.GENERATION),
    (NativeFault("crashed", 134), ExitCode.NATIVE_FAULT),
])
def test_exit_code_for(error, code):
    assert exit_code_for(error) is code


def test_handle_signals_sets_token_and_restores():
    previous = signal.getsignal(signal.SIGINT)
    token = CancellationToken()
    with handle_signals(token, (signal.SIGINT,)):
        os.kill(os.getpid(), signal.SIGINT)
        assert token.cancelled
        assert token.signum == signal.SIGINT
    assert signal.getsignal(signal.SIGINT) is previous


def test_resolve_beams_and_seed_without_generator():
    params = ParameterDictionary([('RG:Beam1', 'p'), ('RG:Beam2', 'pbar'), ('RG:Mom1', '980'),
                                  ('RG:Mom2', '980'), ('RG:Seed', '12')])
    assert resolve_beams(None, params) == (BeamSpec(ParticleKind.PROTON, 980.0),
                                           BeamSpec(ParticleKind.ANTIPROTON, 980.0))
    assert resolve_beams('LHC:14T', params)[0] == BeamSpec(ParticleKind.PROTON, 7000.0)
    assert resolve_seed(None, params) == 12
    assert resolve_seed(5, params) == 5
    assert resolve_seed(None, ParameterDictionary()) is None
    with pytest.raises(ConfigurationError):
        resolve_beams(None, ParameterDictionary())
    with pytest.raises(ConfigurationError):
        resolve_beams('XFEL:10', params)
