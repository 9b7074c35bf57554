"""Run driver: configure one generator, run the event loop, finalize exactly once.

State machine of a run:

    IDLE -> CONFIGURED -> RUNNING -> COMPLETED | ABORTED | INTERRUPTED -> FINALIZED

Configuration order is fixed: beams, then seed, then the non-meta parameters in
dictionary order. Any configuration error aborts the run before the first event.

The loop checks the cancellation token only between iterations; a native call in
progress is never interrupted. A reported event failure aborts the run without retry.
Whatever the terminal state, the generator is finalized once, after the cross-section
has been logged.

Examples:
    ```python
    from py_agile import RunDriver, create, handle_signals, open_writer

    generator = create('toy')
    with open_writer('events.hepmc') as writer:
        driver = RunDriver(generator, beams='LHC:14T', num_events=100, writer=writer)
        with handle_signals(driver.token):
            result = driver.run()
    ```
"""
import signal
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from typing_extensions import Iterator, Optional, Protocol, Sequence, Union

from py_agile.beams import BeamPair, BeamSpec, parse_beams, parse_energy, parse_particle
from py_agile.event import EventRecord
from py_agile.exceptions import ConfigurationError, GenerationError, NativeFault, ParamFileError, StateError
from py_agile.filter import FilterLevel, filter_record
from py_agile.generics.generator import GeneratorProtocol
from py_agile.logger import logger
from py_agile.params import ParameterDictionary

__all__ = (
    'RunStatus',
    'ExitCode',
    'CancellationToken',
    'handle_signals',
    'RunState',
    'RunResult',
    'RunDriver',
    'exit_code_for',
    'resolve_beams',
    'resolve_seed',
)


class RunStatus(Enum):
    IDLE = 'idle'
    CONFIGURED = 'configured'
    RUNNING = 'running'
    COMPLETED = 'completed'
    ABORTED = 'aborted'
    INTERRUPTED = 'interrupted'
    FINALIZED = 'finalized'


class ExitCode(IntEnum):
    OK = 0
    CONFIGURATION = 1
    PARAM_FILE = 2
    GENERATION = 3
    NATIVE_FAULT = 4


def exit_code_for(error: BaseException) -> ExitCode:
    """Process exit code for an error that ended a run."""
    if isinstance(error, ParamFileError):
        return ExitCode.PARAM_FILE
    if isinstance(error, NativeFault):
        return ExitCode.NATIVE_FAULT
    if isinstance(error, GenerationError):
        return ExitCode.GENERATION
    return ExitCode.CONFIGURATION


class CancellationToken:
    """Stop request shared between signal handlers and the event loop."""

    def __init__(self) -> None:
        self._cancelled = False
        self.signum: Optional[int] = None

    def cancel(self, signum: Optional[int] = None) -> None:
        self._cancelled = True
        if signum is not None:
            self.signum = signum

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@contextmanager
def handle_signals(token: CancellationToken,
                   signals: Sequence[int] = (signal.SIGINT, signal.SIGTERM)) -> Iterator[CancellationToken]:
    """Route termination signals to `token` for the duration of the block.

    The handlers only set the token. Previous handlers are restored on exit.
    """
    def _handler(signum, frame):
        logger.warning(f"Received {signal.Signals(signum).name}, stopping after the current event")
        token.cancel(signum)

    previous = {}
    for signum in signals:
        previous[signum] = signal.signal(signum, _handler)
    try:
        yield token
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class EventSink(Protocol):
    def write(self, record: EventRecord) -> None:
        ...


@dataclass
class RunState:
    seed: Optional[int] = None
    num_events: Optional[int] = None
    generated: int = 0
    failed: int = 0
    filter_level: FilterLevel = FilterLevel.NONE
    token: CancellationToken = field(default_factory=CancellationToken)
    status: RunStatus = RunStatus.IDLE


@dataclass
class RunResult:
    status: RunStatus
    generated: int
    failed: int
    exit_code: ExitCode
    message: str = ''
    cross_section: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == ExitCode.OK


def _meta_beams(meta: ParameterDictionary) -> Optional[BeamPair]:
    keys = ('RG:BEAM1', 'RG:BEAM2', 'RG:MOM1', 'RG:MOM2')
    present = [k for k in keys if k in meta]
    if not present:
        return None
    if len(present) != len(keys):
        missing = ", ".join(k for k in keys if k not in meta)
        raise ConfigurationError(f"Incomplete beam meta-parameters, missing {missing}")
    return (BeamSpec(parse_particle(meta['RG:BEAM1']), parse_energy(meta['RG:MOM1'])),
            BeamSpec(parse_particle(meta['RG:BEAM2']), parse_energy(meta['RG:MOM2'])))


def _meta_seed(meta: ParameterDictionary) -> Optional[int]:
    if 'RG:SEED' not in meta:
        return None
    try:
        return int(meta['RG:SEED'])
    except ValueError:
        raise ConfigurationError(f"RG:Seed must be an integer, got {meta['RG:SEED']!r}") from None


def resolve_beams(beams: Union[None, str, BeamPair], params: ParameterDictionary) -> BeamPair:
    """Beam pair of a run: `beams` when given, else the `RG:Beam*`/`RG:Mom*` meta-parameters.

    Raises:
        ConfigurationError: Invalid specification, incomplete meta-parameters, or no beams at all.
    """
    if isinstance(beams, str):
        return parse_beams(beams)
    if beams is not None:
        return beams
    resolved = _meta_beams(params.meta())
    if resolved is None:
        raise ConfigurationError("No beams given: pass a beam specification or set RG:Beam1/2 and RG:Mom1/2")
    return resolved


def resolve_seed(seed: Optional[int], params: ParameterDictionary) -> Optional[int]:
    """`seed` when given, else `RG:Seed`; None keeps the engine default."""
    return seed if seed is not None else _meta_seed(params.meta())


class RunDriver:
    """Drive one generator through a complete run.

    Args:
        generator: A freshly created adapter; the driver owns it and finalizes it.
        beams: Beam pair or a beam specification string. Overrides `RG:Beam*`/`RG:Mom*`.
        params: Run parameters. Meta-parameters are consumed, the rest forwarded in order.
        seed: Random seed. Overrides `RG:Seed`; the engine default is kept when neither is set.
        num_events: Events to generate; None runs until cancelled.
        filter_level: Record filter level applied before output.
        writer: Output collaborator with a `write(record)` method, or None to discard records.
        token: Cancellation token; a new one is created when omitted.
    """

    def __init__(self, generator: GeneratorProtocol,
                 beams: Union[None, str, BeamPair] = None,
                 params: Optional[ParameterDictionary] = None,
                 seed: Optional[int] = None,
                 num_events: Optional[int] = None,
                 filter_level: Union[FilterLevel, int] = FilterLevel.NONE,
                 writer: Optional[EventSink] = None,
                 token: Optional[CancellationToken] = None) -> None:
        if num_events is not None and num_events < 0:
            raise ConfigurationError(f"Number of events must not be negative, got {num_events}")
        self.generator = generator
        self.params = params if params is not None else ParameterDictionary()
        self.writer = writer
        self._beams = beams
        self.state = RunState(seed=seed, num_events=num_events, filter_level=FilterLevel(filter_level),
                              token=token if token is not None else CancellationToken())

    @property
    def token(self) -> CancellationToken:
        return self.state.token

    @property
    def status(self) -> RunStatus:
        return self.state.status

    def configure(self) -> None:
        """Apply beams, seed and parameters to the generator, in that order."""
        beams = resolve_beams(self._beams, self.params)
        self.state.seed = resolve_seed(self.state.seed, self.params)

        name = self.generator.name
        logger.info(f"Configuring {name}: {beams[0].kind.name} {beams[0].momentum:g} GeV + "
                    f"{beams[1].kind.name} {beams[1].momentum:g} GeV")
        self.generator.set_initial_state(*beams)
        if self.state.seed is not None:
            logger.info(f"{name}: seed = {self.state.seed}")
            self.generator.set_seed(self.state.seed)
        for key, value in self.params.native_items():
            logger.info(f"{name}: {key} = {value}")
            self.generator.set_param(key, value)
        self.state.status = RunStatus.CONFIGURED

    def _finished(self) -> bool:
        return self.state.num_events is not None and self.state.generated >= self.state.num_events

    def _loop(self) -> None:
        self.state.status = RunStatus.RUNNING
        while not self._finished():
            if self.state.token.cancelled:
                self.state.status = RunStatus.INTERRUPTED
                return
            if not self.generator.generate_event():
                self.state.failed += 1
                self.state.status = RunStatus.ABORTED
                raise GenerationError(f"{self.generator.name}: event {self.state.generated + 1} failed")
            record = filter_record(self.generator.get_event_record(), self.state.filter_level)
            if self.writer is not None:
                self.writer.write(record)
            self.state.generated += 1
            if self.state.generated % 100 == 0:
                logger.debug(f"{self.state.generated} events generated")
        self.state.status = RunStatus.COMPLETED

    def _cross_section(self) -> Optional[float]:
        try:
            return self.generator.cross_section
        except (GenerationError, NativeFault) as e:
            logger.warning(f"Cross-section unavailable: {e}")
            return None

    def run(self) -> RunResult:
        """Configure, generate and finalize.

        Errors are reported in the result rather than raised; a StateError, which
        indicates misuse of the generator, propagates after finalization.
        """
        if self.state.status is not RunStatus.IDLE:
            raise StateError(f"Run already {self.state.status.value}")
        exit_code = ExitCode.OK
        message = ''
        cross_section = None
        try:
            try:
                self.configure()
                self._loop()
            except (ConfigurationError, GenerationError, NativeFault) as e:
                self.state.status = RunStatus.ABORTED
                exit_code = exit_code_for(e)
                message = str(e)
                logger.error(message)
            if exit_code != ExitCode.NATIVE_FAULT:
                cross_section = self._cross_section()
                if cross_section is not None:
                    logger.info(f"Cross-section: {cross_section:g} pb")
        finally:
            terminal = self.state.status
            try:
                self.generator.finalize()
            except NativeFault as e:
                logger.error(f"Finalize failed: {e}")
                if exit_code == ExitCode.OK:
                    exit_code = ExitCode.NATIVE_FAULT
                    message = str(e)
                    terminal = RunStatus.ABORTED
        if terminal is RunStatus.INTERRUPTED:
            message = (f"Interrupted after {self.state.generated} of "
                       f"{self.state.num_events if self.state.num_events is not None else 'unbounded'} events")
            logger.warning(message)
        elif terminal is RunStatus.COMPLETED:
            logger.info(f"Generated {self.state.generated} events")
        result = RunResult(terminal, self.state.generated, self.state.failed, exit_code, message, cross_section)
        self.state.status = RunStatus.FINALIZED
        return result
