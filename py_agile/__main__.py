"""agile-runmc: run one event generator and write HepMC3 events."""
import argparse
import logging
import random
import sys
from importlib import metadata

from typing_extensions import List, Optional

from py_agile import get_config
from py_agile.driver import ExitCode, RunDriver, exit_code_for, handle_signals, resolve_beams, resolve_seed
from py_agile.exceptions import ConfigurationError, LibraryLoadError
from py_agile.hepmc import open_writer
from py_agile.interface import GeneratorRegistry
from py_agile.logger import enable_file_logging, logger, set_console_level
from py_agile.native import search_path
from py_agile.params import resolve_parameters


version = metadata.version("py-agile")


class AgileArgumentParser(argparse.ArgumentParser):
    """Reports usage errors with the invalid-configuration exit code."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(int(ExitCode.CONFIGURATION), f"{self.prog}: error: {message}\n")


def add_run_arguments(parser):
    run = parser.add_argument_group('Run', 'Event generation')
    run.add_argument("-n", "--nevts", type=int, default=10, metavar="N",
                     help="Number of events to generate (default: %(default)s)")
    run.add_argument("-b", "--beams", metavar="BEAMS",
                     help="Beams, e.g. 'p:7000,p:7000', 'LHC:14T' or 'HERA:318'")
    seed = run.add_mutually_exclusive_group()
    seed.add_argument("-s", "--seed", type=int, help="Random seed")
    seed.add_argument("--randomize-seed", action="store_true", help="Use a random seed")


def add_param_arguments(parser):
    params = parser.add_argument_group('Parameters', 'Generator parameters, later settings win')
    params.add_argument("-P", "--paramfile", action="append", default=[], metavar="FILE",
                        help="Parameter file, may be repeated")
    params.add_argument("-p", "--param", action="append", default=[], metavar="KEY=VALUE",
                        help="Parameter override, may be repeated")


def add_output_arguments(parser):
    config = get_config()
    output = parser.add_argument_group('Output')
    output.add_argument("-o", "--out", default="-", metavar="OUT",
                        help="HepMC output file, '-' for stdout (default)")
    output.add_argument("--out-precision", type=int, default=config.precision, metavar="N",
                        help="Significant digits for momenta (default: %(default)s)")
    output.add_argument("--filter", type=int, choices=(0, 1, 2), default=config.filter_level,
                        help="Record filter level (default: %(default)s)")


def get_arg_parser():
    parser = AgileArgumentParser(
        prog='agile-runmc',
        description="Run a HEP event generator and write HepMC events"
    )
    parser.add_argument('generator', nargs='?', help="Generator name, see --list-gens")
    parser.add_argument("-v", "--version", action='version',
                        version=f'agile-runmc v{version}', help="Show version")
    parser.add_argument("--list-gens", action="store_true", help="List available generators and exit")
    parser.add_argument("--isolate", action="store_true", default=get_config().isolate,
                        help="Run the generator in a child process")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-d", "--debug", action="store_true", help="Enable debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors")
    parser.add_argument("--log-file", metavar="FILE", help="Also write a DEBUG log to FILE")

    add_run_arguments(parser)
    add_param_arguments(parser)
    add_output_arguments(parser)
    return parser


def list_gens() -> None:
    available = set(GeneratorRegistry.available_generators())
    for name in GeneratorRegistry.list_generators():
        print(f"{name}{'' if name in available else '  (not installed)'}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = get_arg_parser()
    args = parser.parse_args(argv)

    set_console_level(logging.DEBUG if args.debug else logging.WARNING if args.quiet else logging.INFO)
    if args.debug:
        logger.info("Debug messages enabled")
    if args.log_file:
        try:
            enable_file_logging(args.log_file)
        except OSError as exc:
            logger.error(f"Cannot open log file {args.log_file}: {exc}")
            return int(ExitCode.CONFIGURATION)

    if args.list_gens:
        list_gens()
        return int(ExitCode.OK)
    if args.generator is None:
        parser.error("a generator name is required")
    if args.nevts < 0:
        parser.error("the number of events must not be negative")
    if args.out_precision < 1:
        parser.error("the output precision must be positive")

    seed = random.randint(1, 2 ** 31 - 1) if args.randomize_seed else args.seed
    try:
        path = search_path()
        params = resolve_parameters(args.paramfile, args.param, path)
        beams = resolve_beams(args.beams, params)
        seed = resolve_seed(seed, params)
        generator = GeneratorRegistry.create(args.generator, path, isolate=args.isolate)
    except (ConfigurationError, LibraryLoadError) as exc:
        logger.error(str(exc))
        return int(exit_code_for(exc))

    try:
        writer = open_writer(args.out, args.out_precision)
    except (OSError, ValueError) as exc:
        logger.error(f"Cannot open output {args.out}: {exc}")
        generator.finalize()
        return int(ExitCode.CONFIGURATION)

    with writer:
        driver = RunDriver(generator, beams=beams, params=params, seed=seed, num_events=args.nevts,
                           filter_level=args.filter, writer=writer)
        with handle_signals(driver.token):
            result = driver.run()
    return int(result.exit_code)


if __name__ == '__main__':
    sys.exit(main())
