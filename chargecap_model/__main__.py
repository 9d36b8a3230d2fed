# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""Script to handle chargecap <cmd> calls from the command line."""

import argparse
import importlib
import sys

import chargecap_model


def print_version():
    print("Charge capacity model version " + chargecap_model.__version__)


def help_text():
    print(
        f"Must specify one of the following commands: {list(cmds.keys()) + ['--version']}.\n"
        "E.g. Run 'chargecap solve'."
    )


def get_module_runner(module):
    def runner():
        importlib.import_module(module).main()

    return runner


cmds = {
    "solve": get_module_runner("chargecap_model.solve"),
    "help": help_text,
}


def main():
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--version", default=False, action="store_true", help="Get version info"
    )
    parser.add_argument(
        "subcommand",
        choices=cmds.keys(),
        help="The possible chargecap subcommands",
        nargs="?",
        default="help",
    )

    # Users may load local modules via modules.txt, so the current working
    # directory must always be on the path, even when run as a script.
    sys.path[0] = ""

    args, remaining_args = parser.parse_known_args()

    if args.version:
        print_version()
        return 0

    # adjust the argument list to make it look like someone ran "python -m <module>" directly
    if len(sys.argv) > 1:
        sys.argv[0] += " " + sys.argv[1]
        del sys.argv[1]
    cmds[args.subcommand]()


if __name__ == "__main__":
    main()
