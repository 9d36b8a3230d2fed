#!/usr/bin/env python
# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Build, solve and report a charge capacity model from the command line.

The model is assembled from the modules listed in modules.txt (in the
current directory or the inputs directory), with options read from
options.txt followed by the command line.
"""
import ast
import itertools
import json
import logging
import os
import shlex
import sys
import textwrap
import traceback

from pyomo.environ import Objective
from pyomo.opt import SolverFactory, SolverStatus, TerminationCondition

import chargecap_model
from chargecap_model.utilities import (
    ChargeCapAbstractModel,
    StepTimer,
    _ArgumentParser,
    make_log_file_path,
    wrap,
)


def main(args=None, return_model=False, return_instance=False):
    timer = StepTimer()
    if args is None:
        args = get_option_file_args(extra_args=sys.argv[1:])

    pre_module_options = parse_pre_module_options(args)

    # use the debugger or a compact error report for uncaught exceptions
    global old_excepthook, full_traceback
    old_excepthook = sys.excepthook
    full_traceback = pre_module_options.full_traceback
    sys.excepthook = debug if pre_module_options.debug else report_error

    # pyomo's own DEBUG output is overwhelming, so pyomo runs one level quieter
    pyomo_levels = {"DEBUG": "INFO", "INFO": "WARNING"}
    log_level = pre_module_options.log_level.upper()
    logging.getLogger("pyomo").setLevel(pyomo_levels.get(log_level, log_level))

    logger = make_logger(pre_module_options)
    logger.info(
        textwrap.dedent(
            f"""
            {'=' * 80}
            Charge capacity model {chargecap_model.__version__}
            {'=' * 80}"""
        )
    )

    modules = get_module_list(args)
    model = ChargeCapAbstractModel(modules, args=args, logger=logger)
    logger.info(f"Model defined in {timer.step_time():.2f} s.")
    if return_model and not return_instance:
        return model

    logger.info("\nLoading inputs...")
    instance = model.load_inputs()
    timer.step_time()

    logger.info("Executing pre-solve functions...")
    instance.pre_solve()
    logger.info(f"Completed pre-solve processing in {timer.step_time():.2f} s.")

    if return_instance:
        return (model, instance) if return_model else instance

    # several runs may share an outputs directory
    os.makedirs(instance.options.outputs_dir, exist_ok=True)

    results = solve(instance)
    logger.info(
        f"\nOptimization termination condition was "
        f"{results.solver.termination_condition}."
    )
    if str(results.solver.message) != "<undefined>":
        logger.info(f"Solver message: {results.solver.message}")
    timer.step_time()

    with open(os.path.join(instance.options.outputs_dir, "model_config.json"), "w") as f:
        json.dump({"options": vars(instance.options), "modules": modules}, f, indent=4)

    if not instance.options.no_post_solve:
        logger.info("\nExecuting post-solve functions...")
        instance.post_solve()
        logger.info(f"Completed post-solve processing in {timer.step_time():.2f} s.")

    logger.info(f"\nModel completed successfully in {timer.total_time():0.2f} s.")
    logger.info("=" * 80 + "\n")
    return instance


# show a full traceback for uncaught errors?
full_traceback = False
old_excepthook = sys.excepthook


def report_error(exc_type, exc_value, exc_traceback):
    msg = f"{exc_type.__name__}: {exc_value}"
    if "\n" not in msg:  # pyomo messages come pre-wrapped
        msg = wrap(msg, indent=4)
    print(f"{'=' * 80}\nTerminating early due to error:\n{msg}\n{'-' * 80}")
    if exc_type is SyntaxError or full_traceback:
        print("Error details:")
        old_excepthook(exc_type, exc_value, exc_traceback)
        return
    locations = "".join(
        f"    > {frame.f_globals['__name__']}.{frame.f_code.co_name}:{line}\n"
        for frame, line in traceback.walk_tb(exc_traceback)
    )
    print(
        f"The error occurred at\n{locations}"
        "Run with --full-traceback to see more details or --debug to debug "
        f"interactively.\n{'=' * 80}\n"
    )
    sys.exit(1)


def debug(exc_type, exc_value, exc_traceback):
    """Print the exception and open the pdb debugger at the point of failure."""
    import pdb

    traceback.print_exception(exc_type, exc_value, exc_traceback)
    pdb.post_mortem(exc_traceback)


def define_arguments(argparser):
    # repeat the options used before modules load, so they show up in --help
    add_pre_module_args(argparser)
    add_module_args(argparser)

    # used by several modules' reporting code
    argparser.add_argument(
        "--sorted-output",
        default=False,
        action="store_true",
        dest="sorted_output",
        help=(
            "Sort result files lexicographically. Otherwise results are "
            "written in the same order as the input data."
        ),
    )
    argparser.add_argument(
        "--solver",
        default="glpk",
        help='Name of Pyomo solver to use for the model (default is "glpk")',
    )
    argparser.add_argument(
        "--solver-options-string",
        dest="solver_options_string",
        default="",
        help=(
            "A quoted string of options to pass to the solver, each of the "
            'form option=value, e.g., "mipgap=0.001 threads=1"'
        ),
    )
    argparser.add_argument(
        "--stream-output",
        "--stream-solver",
        action="store_true",
        dest="tee",
        default=False,
        help="Display information from the solver about its progress",
    )
    argparser.add_argument(
        "--no-post-solve",
        default=False,
        action="store_true",
        help="Don't run post-solve code on the completed model (i.e., reporting functions).",
    )
    argparser.add_argument(
        "--outputs-dir",
        default="outputs",
        help='Directory to write output files (default is "outputs")',
    )
    argparser.add_argument(
        "--input-aliases",
        "--input-alias",
        dest="input_aliases",
        nargs="+",
        default=[],
        help=(
            "Input file substitutions of the form standard_file.csv=alternative_file.csv, "
            "useful for sensitivity studies."
        ),
    )


def add_module_args(parser):
    parser.add_argument(
        "--module-list",
        default=None,
        help='Text file with a list of modules to include in the model (default is "modules.txt")',
    )
    parser.add_argument(
        "--include-modules",
        "--include-module",
        dest="include_exclude_modules",
        nargs="+",
        action="include",
        default=[],
        help="Module(s) to add to the model in addition to those in the --module-list file",
    )
    parser.add_argument(
        "--exclude-modules",
        "--exclude-module",
        dest="include_exclude_modules",
        nargs="+",
        action="exclude",
        default=[],
        help="Module(s) to remove from the model after processing "
        "the --module-list file and prior --include-modules arguments",
    )
    # modules.txt may live in the inputs directory
    parser.add_argument(
        "--inputs-dir",
        default="inputs",
        help='Directory containing input files (default is "inputs")',
    )


def add_pre_module_args(parser):
    """Add the arguments needed before any modules are loaded."""
    parser.add_argument(
        "--log-run",
        dest="log_run_to_file",
        default=False,
        action="store_true",
        help="Also write log messages to a file in --logs-dir.",
    )
    parser.add_argument(
        "--logs-dir",
        dest="logs_dir",
        default="logs",
        help='Directory containing log files (default is "logs")',
    )
    # Modules log progress with logger.info(), recoverable problems with
    # logger.warning() and use logger.error() to explain an exception that
    # is about to be raised.
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="warning",
        choices=["error", "warning", "info", "debug"],
        help='Amount of detail to include in logging. Default is "warning".',
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Automatically start pdb debugger when an error occurs",
    )
    parser.add_argument(
        "--full-traceback",
        action="store_true",
        default=False,
        help="Show the full Python traceback when an error occurs.",
    )


def parse_pre_module_options(args):
    parser = _ArgumentParser(allow_abbrev=False, add_help=False)
    add_pre_module_args(parser)
    return parser.parse_known_args(args=args)[0]


def parse_list_file(file):
    """
    Return the items in a text file, one per line, ignoring blank lines and
    anything after "#".
    """
    with open(file) as f:
        items = [line.split("#", 1)[0].strip() for line in f]
    return [i for i in items if i]


def get_module_list(args):
    parser = _ArgumentParser(allow_abbrev=False, add_help=False)
    add_module_args(parser)
    module_options = parser.parse_known_args(args=args)[0]

    module_list_file = module_options.module_list
    if module_list_file is None:
        # current directory first, then the inputs directory
        candidates = ["modules.txt", os.path.join(module_options.inputs_dir, "modules.txt")]
        module_list_file = next((f for f in candidates if os.path.exists(f)), None)
    if module_list_file is None:
        # not an error, so "chargecap solve --help" works anywhere
        print(
            "WARNING: No module list found. Please create a modules.txt file "
            "with a list of modules to use for the model."
        )
        modules = []
    else:
        modules = parse_list_file(module_list_file)

    # include_exclude_modules looks like [('include', [m1, m2]), ('exclude', [m3])]
    for action, names in module_options.include_exclude_modules:
        for name in names:
            if action == "include" and name not in modules:
                modules.append(name)
            elif action == "exclude":
                if name not in modules:
                    raise ValueError(
                        f"Unable to exclude module {name} because it was not "
                        "previously included."
                    )
                modules.remove(name)

    # this module defines the solver and output options
    modules.append(__name__)
    return modules


def get_option_file_args(dir=".", extra_args=[]):
    """
    Return the arguments in options.txt (if present) followed by extra_args.
    Arguments may span several lines and "#" starts a comment.
    """
    args = []
    options_path = os.path.join(dir, "options.txt")
    if os.path.exists(options_path):
        with open(options_path) as f:
            for line in f:
                args.extend(shlex.split(line, comments=True))
    return args + list(extra_args)


def solve(model):
    if not hasattr(model, "solver"):
        model.solver = SolverFactory(model.options.solver)

    solver_args = {
        "options": options_string_to_dict(model.options.solver_options_string),
        "tee": model.options.tee,
    }
    solver_args = {k: v for k, v in solver_args.items() if v}

    timer = StepTimer()
    model.logger.info("\nSolving model...")
    if model.options.tee:
        model.logger.info("-" * 33 + " solver output " + "-" * 32)

    try:
        results = model.solver.solve(model, **solver_args)
    except Exception as err:
        if "is not available" in str(err):
            raise RuntimeError(
                f"Solver {model.options.solver} could not be found. "
                "This is usually due to missing either the solver binary "
                "software or the python bindings for it."
            )
        model.logger.error(
            f"\n{'=' * 80}\nAn error occurred while solving the model:\n{err}\n"
        )
        if not model.options.tee:
            model.logger.error(
                "Specify `--stream-solver` and then check the solver log for "
                "more details."
            )
        raise

    if model.options.tee:
        model.logger.info("-" * 28 + " end of solver output " + "-" * 28 + "\n")
    model.logger.info(
        f"Solver finished. Total time spent in solver: {timer.step_time():0.2f} s."
    )

    # glpk sometimes reports infeasible problems with termination condition
    # "other"
    condition = results.solver.termination_condition
    if condition in {
        TerminationCondition.infeasible,
        TerminationCondition.infeasibleOrUnbounded,
    } or (model.options.solver == "glpk" and condition == TerminationCondition.other):
        model.logger.error("\nModel was infeasible.")
        # modules can point at the input data that caused the problem
        model.call_module_hook("report_infeasibility", model)
        raise RuntimeError("Infeasible model")

    # the objective can only be evaluated if a solution was loaded
    try:
        for o in model.component_objects(Objective):
            o()
    except ValueError:
        model.logger.error(
            f"\n{'=' * 80}\nSolver terminated without a solution:\n"
            f"  Solver Status: {results.solver.status}\n"
            f"  Termination Condition: {condition}\n"
        )
        raise RuntimeError("Solver failed to produce a solution.")

    # e.g., a time limit was reached but a valid solution was returned
    if results.solver.status != SolverStatus.ok:
        model.logger.warning(
            f"Solver terminated with status {results.solver.status} "
            f"and termination condition {condition}."
        )

    model.last_results = results
    return results


_logger_ids = itertools.count(1)


def make_logger(parsed_args):
    """
    Create a new logger for one model instance. Models built in the same
    process may use different logging settings, so each gets its own.
    """
    instance_number = next(_logger_ids)
    name = "Charge Capacity"
    if instance_number > 1:
        name += f" instance {instance_number}"
    logger = logging.getLogger(name)
    logger.setLevel(parsed_args.log_level.upper())
    # progress messages go to stdout, not stderr
    logger.addHandler(logging.StreamHandler(sys.stdout))
    if parsed_args.log_run_to_file:
        log_file = make_log_file_path(parsed_args.logs_dir)
        logger.addHandler(logging.FileHandler(log_file))
        print(f"logging output to {log_file}")
    return logger


def options_string_to_dict(opt_str):
    """
    Convert a solver options string into a dict, converting values to standard
    types where possible.

    >>> options_string_to_dict("mipgap=0.001 threads=1 method=barrier")
    {'mipgap': 0.001, 'threads': 1, 'method': 'barrier'}
    """
    opt_dict = {}
    for token in shlex.split(opt_str):
        if "=" not in token:
            raise ValueError(f"Solver options must have the form option=value: '{opt_str}'")
        key, val = token.split("=", 1)
        try:
            val = ast.literal_eval(val)
        except (ValueError, SyntaxError):
            pass
        opt_dict[key] = val
    return opt_dict


if __name__ == "__main__":
    main()
