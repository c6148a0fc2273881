#!/usr/bin/env python
import sys
import argparse
from argparse import RawTextHelpFormatter

import vagrantfleet
from vagrantfleet import log
from vagrantfleet.config import load_config
from vagrantfleet.errors import (
    EngineInvocationError,
    FleetError,
    MachineNotRunningError,
)
from vagrantfleet.loggers.logger import set_verbosity
from vagrantfleet.manager import FleetManager

#: int: exit code when a machine failed its status check
EXIT_MACHINE_NOT_RUNNING = 1

#: int: exit code of any other fatal error
EXIT_FATAL = 2


def parse_args():

    parser = argparse.ArgumentParser(
        description=(
            f"vagrantfleet version {vagrantfleet.metadata.version}\n"
            "Bring up N numbered vagrant machines reachable over ssh\n"
            "\n"
            "usage example\n"
            "\n"
            "   provision\n"
            "       # provision with ./fleet.yml, or the defaults if it does not exist\n"
            "       $ vagrantfleet provision\n"
            "\n"
            "       # provision three machines using a specific configuration file\n"
            "       $ vagrantfleet --conf ~/fleets/lab.yml provision --count 3\n"
            "\n"
            "   status\n"
            "       # show the state and address of every machine\n"
            "       $ vagrantfleet status\n"
            "\n"
            "   deprovision\n"
            "       # destroy the machines, the ssh key is kept\n"
            "       $ vagrantfleet deprovision\n"
        ),
        formatter_class=RawTextHelpFormatter
    )

    parser.add_argument(
        '--conf',
        type=str,
        help='the configuration file (default: ./fleet.yml if it exists)',
        dest='conf',
        default=None
    )

    parser.add_argument(
        '--version',
        action='count',
        default=0,
        help='display the version and exit'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='log the executed commands and debug messages'
    )

    subparsers = parser.add_subparsers(help="sub-commands for vagrantfleet")

    #
    # sub parser for provisioning the fleet
    #
    parser_prov = subparsers.add_parser('provision', help='provision the machines')
    parser_prov.set_defaults(func=provision)
    parser_prov.add_argument(
        '--count',
        type=int,
        help='the number of machines, overrides vm_count',
        dest='count',
        default=None
    )

    #
    # sub parser for querying the machines
    #
    parser_status = subparsers.add_parser('status', help='show the state of the machines')
    parser_status.set_defaults(func=status)

    #
    # sub parser for deprovisioning the fleet
    #
    parser_deprov = subparsers.add_parser('deprovision', help='destroy the machines')
    parser_deprov.set_defaults(func=deprovision)

    return parser


def provision(manager: FleetManager, cli_args) -> int:
    manager.provision()
    return 0


def status(manager: FleetManager, cli_args) -> int:
    results = manager.status()
    return 0 if all(result.ok for result in results) else EXIT_MACHINE_NOT_RUNNING


def deprovision(manager: FleetManager, cli_args) -> int:
    manager.deprovision()
    return 0


def exit_code_for(exc: FleetError) -> int:
    """
    Return the process exit code for a fatal error.
    """
    if isinstance(exc, MachineNotRunningError):
        return EXIT_MACHINE_NOT_RUNNING
    if isinstance(exc, EngineInvocationError):
        return exc.return_code or EXIT_MACHINE_NOT_RUNNING
    return EXIT_FATAL


def main(argv=None) -> int:

    arg_parser = parse_args()
    args = arg_parser.parse_args(argv)

    if args.version:
        print(f'v{vagrantfleet.metadata.version}')
        return 0

    if args.verbose:
        set_verbosity(True)

    func = getattr(args, 'func', provision)

    try:
        config = load_config(args.conf)
        config = config.override(
            vm_count=getattr(args, 'count', None),
            verbose=args.verbose or None,
        )
        if config.verbose:
            set_verbosity(True)
        manager = FleetManager(config)
        return func(manager, args)
    except FleetError as exc:
        log.error(f"[{exc.stage}] {exc}")
        return exit_code_for(exc)


if __name__ == '__main__':
    sys.exit(main())
