"""Out-of-process fault containment for native generators.

A Fortran engine that hits a fatal condition calls STOP or crashes, taking the hosting
process with it. `IsolatedGenerator` runs the adapter in a `spawn`ed child process and
forwards every GeneratorProtocol call over a `multiprocessing` Pipe, so a dying engine
surfaces in the caller as a `NativeFault` carrying the child's exit code.

The child ignores SIGINT: an interactive interrupt reaches the whole process group, and
only the parent's cancellation token decides when the run stops. Exceptions raised in the
child are pickled and re-raised in the parent with their attributes.
"""
import multiprocessing
import signal
from multiprocessing.connection import Connection
from pathlib import Path

from typing_extensions import Any, Callable, List, Optional, Sequence

from py_agile.beams import BeamSpec
from py_agile.event import EventRecord
from py_agile.exceptions import NativeFault, StateError
from py_agile.logger import logger

__all__ = ('IsolatedGenerator',)

_POLL_INTERVAL = 0.1
_JOIN_TIMEOUT = 10.0

_CALLS = frozenset({
    'set_initial_state', 'set_seed', 'set_param', 'generate_event', 'get_event_record', 'finalize',
    'name', 'version', 'cross_section',
})
_PROPERTIES = frozenset({'name', 'version', 'cross_section'})


def _serve(conn: Connection, name: str, path: List[str], log_level: int) -> None:
    """Child process main loop: create the adapter and answer calls until finalize."""
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    logger.setLevel(log_level)
    from py_agile.interface import GeneratorRegistry

    try:
        generator = GeneratorRegistry.create(name, [Path(p) for p in path])
    except Exception as e:
        conn.send(('error', e))
        conn.close()
        return
    conn.send(('ok', generator.name))

    while True:
        try:
            method, args = conn.recv()
        except EOFError:
            # Parent went away; release the engine
            if not getattr(generator, 'finalized', True):
                generator.finalize()
            break
        try:
            if method not in _CALLS:
                raise AttributeError(f"{method} is not a generator call")
            attr = getattr(generator, method)
            result = attr if method in _PROPERTIES else attr(*args)
            conn.send(('ok', result))
        except Exception as e:
            conn.send(('error', e))
        if method == 'finalize':
            break
    conn.close()


class IsolatedGenerator:
    """GeneratorProtocol proxy for an adapter running in a child process."""

    def __init__(self, name: str, path: Sequence[Path]) -> None:
        ctx = multiprocessing.get_context('spawn')
        self._conn, child_conn = ctx.Pipe()
        self._process = ctx.Process(target=_serve, args=(child_conn, name, [str(p) for p in path], logger.level),
                                    name=f"agile-{name}", daemon=True)
        self._process.start()
        child_conn.close()
        self._finalized = False
        self._finalize_callbacks: List[Callable[[], None]] = []
        self._name: str = name
        try:
            self._name = self._receive()
        except BaseException:
            self._shutdown()
            raise
        logger.debug(f"{self._name}: running in child process {self._process.pid}")

    def __repr__(self) -> str:
        return f"<IsolatedGenerator {self._name!r} pid={self._process.pid}>"

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def add_finalize_callback(self, callback: Callable[[], None]) -> None:
        self._finalize_callbacks.append(callback)

    def _fault(self) -> NativeFault:
        self._process.join(_JOIN_TIMEOUT)
        return NativeFault(f"{self._name}: engine process died", self._process.exitcode)

    def _receive(self) -> Any:
        while not self._conn.poll(_POLL_INTERVAL):
            if not self._process.is_alive():
                # The child may have replied just before exiting
                if self._conn.poll():
                    break
                raise self._fault()
        try:
            status, payload = self._conn.recv()
        except (EOFError, OSError):
            raise self._fault() from None
        if status == 'error':
            raise payload
        return payload

    def _call(self, method: str, *args: Any) -> Any:
        if self._finalized:
            raise StateError(f"{self._name}: {method} after finalize")
        try:
            self._conn.send((method, args))
        except (BrokenPipeError, OSError):
            raise self._fault() from None
        return self._receive()

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._call('version')

    @property
    def cross_section(self) -> Optional[float]:
        return self._call('cross_section')

    def set_initial_state(self, beam_a: BeamSpec, beam_b: BeamSpec) -> None:
        self._call('set_initial_state', beam_a, beam_b)

    def set_seed(self, seed: int) -> None:
        self._call('set_seed', seed)

    def set_param(self, key: str, value: str) -> None:
        self._call('set_param', key, value)

    def generate_event(self) -> bool:
        return self._call('generate_event')

    def get_event_record(self) -> EventRecord:
        return self._call('get_event_record')

    def finalize(self) -> None:
        """Finalize the remote adapter and reap the child.

        A child that has already died is only reaped: its engine state went with it.
        """
        if self._finalized:
            raise StateError(f"{self._name}: finalize called twice")
        try:
            if self._process.is_alive():
                self._call('finalize')
            else:
                logger.warning(f"{self._name}: engine process already exited with code {self._process.exitcode}")
        finally:
            self._finalized = True
            self._shutdown()
            for callback in self._finalize_callbacks:
                callback()
            self._finalize_callbacks.clear()

    def _shutdown(self) -> None:
        self._conn.close()
        self._process.join(_JOIN_TIMEOUT)
        if self._process.is_alive():
            logger.warning(f"{self._name}: engine process did not exit, terminating it")
            self._process.terminate()
            self._process.join()
