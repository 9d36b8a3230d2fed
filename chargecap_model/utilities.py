# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Utility functions for building, loading and reporting charge-capacity models.
"""
import argparse
import datetime
import importlib
import logging
import os
import sys
import textwrap
import time
import types

from pyomo.environ import *
from pyomo.core.base.set import UnknownSetDimen

# sentinel Pyomo uses for params without a default
NoValue = Param.NoValue


class ChargeCapAbstractModel(AbstractModel):
    """
    Pyomo AbstractModel assembled from a list of modules. Each module may
    define any of these hooks, which are called in this order for all
    modules before moving on to the next hook:

    define_arguments(argparser): add command-line options; parsed values
    are available as model.options.<name>.

    define_dynamic_lists(model): add lists that other modules register
    components in, e.g., Cost_Components.

    define_components(model): add sets, params, variables, expressions and
    constraints, and register with the dynamic lists.

    define_dynamic_components(model): add components that depend on the
    contents of the dynamic lists, e.g., the objective function.

    Pass args=[] when using this as a library, so options meant for another
    program are not parsed here.
    """

    def __init__(self, module_list=None, args=sys.argv[1:], logger=None):
        AbstractModel.__init__(self)

        # late import to avoid a circular dependency
        import chargecap_model.solve

        if module_list is None:
            module_list = chargecap_model.solve.get_module_list(args)
        self.module_list = load_modules(module_list)
        check_dependencies(self.module_list)

        # chargecap_model.solve passes in a logger configured from the command
        # line; library users get a default one since every module logs
        # through model.logger.
        self.logger = logger or logging.getLogger("Charge Capacity Default Logger")

        argparser = _ArgumentParser(allow_abbrev=False)
        self.call_module_hook("define_arguments", argparser)
        self.options = argparser.parse_args(args)

        active = ", ".join(f"{k}={v!r}" for k, v in vars(self.options).items() if v)
        self.logger.info("Arguments:\n" + wrap(active, indent=4))
        self.logger.info("\nModules:\n" + wrap(", ".join(self.module_list), indent=4))
        self.logger.info("=" * 80 + "\n")

        self.call_module_hook("define_dynamic_lists", self)
        self.call_module_hook("define_components", self)
        self.call_module_hook("define_dynamic_components", self)

    def get_modules(self):
        """Return the loaded module objects for this model, in order."""
        return [sys.modules[name] for name in self.module_list]

    def call_module_hook(self, hook, *args):
        for module in self.get_modules():
            if hasattr(module, hook):
                getattr(module, hook)(*args)

    def min_data_check(self, *mandatory_components):
        """
        Attach a BuildCheck that raises a ValueError naming any of the
        mandatory components that did not receive data. Pyomo would otherwise
        fail later with an obscure error when a rule reads the missing value.
        """
        self._num_data_checks = getattr(self, "_num_data_checks", 0) + 1
        setattr(
            self,
            f"min_data_check_{self._num_data_checks}",
            BuildCheck(
                rule=lambda m: check_mandatory_components(m, *mandatory_components)
            ),
        )

    def load_inputs(self, inputs_dir=None, attach_data_portal=True):
        """
        Read the inputs for every module into a DataPortal and return a
        ChargeCapConcreteModel instance built from them.
        """
        if inputs_dir is None:
            inputs_dir = getattr(self.options, "inputs_dir", "inputs")

        timer = StepTimer()
        data = DataPortal(model=self)
        data.load_aug = types.MethodType(load_aug, data)
        for module in self.get_modules():
            if hasattr(module, "load_inputs"):
                module.load_inputs(self, data, inputs_dir)
        self.logger.info(f"Data read in {timer.step_time():.2f} s.")

        self.logger.info("\nConstructing model instance from data and rules...")
        instance = self.create_instance(
            data, report_timing=self.logger.isEnabledFor(logging.DEBUG)
        )
        if attach_data_portal:
            instance.DataPortal = data
        self.logger.info(f"Model instance constructed in {timer.step_time():.2f} s.\n")
        return instance

    def create_instance(*args, **kwargs):
        """
        Pyomo builds the instance as a deep copy of the abstract model and then
        switches its class to ConcreteModel. Switch it once more so the
        instance has our pre_solve and post_solve methods.
        """
        instance = AbstractModel.create_instance(*args, **kwargs)
        instance.__class__ = ChargeCapConcreteModel
        return instance


class ChargeCapConcreteModel(ConcreteModel):
    """Model instance that can run the pre_solve and post_solve module hooks."""

    get_modules = ChargeCapAbstractModel.get_modules
    call_module_hook = ChargeCapAbstractModel.call_module_hook

    def pre_solve(self):
        self.call_module_hook("pre_solve", self)

    def post_solve(self, outputs_dir=None):
        if outputs_dir is None:
            outputs_dir = getattr(self.options, "outputs_dir", "outputs")
        os.makedirs(outputs_dir, exist_ok=True)
        self.call_module_hook("post_solve", self, outputs_dir)


def load_modules(module_list):
    """
    Import the named modules and return their names in load order. A
    package with a core_modules list is followed by those modules (and
    theirs, recursively), so "chargecap_model" alone gives a working model.
    Modules named more than once are only kept the first time.
    """
    loaded = []
    for name in module_list:
        module = importlib.import_module(name)
        for full_name in [name] + load_modules(getattr(module, "core_modules", [])):
            if full_name not in loaded:
                loaded.append(full_name)
    return loaded


def check_dependencies(module_list):
    """
    Raise a ValueError if a module declares a dependency (a name or tuple of
    names in its `dependencies` attribute) that is not loaded before it.
    """
    for i, name in enumerate(module_list):
        dependencies = getattr(sys.modules[name], "dependencies", ())
        if isinstance(dependencies, str):
            dependencies = (dependencies,)
        missing = [d for d in dependencies if d not in module_list[:i]]
        if missing:
            raise ValueError(
                f"Module {name} requires {', '.join(missing)}, which must be "
                "listed before it in the module list."
            )


class StepTimer(object):
    """
    Track elapsed time for the steps of a process. Each call to step_time()
    returns the time since the previous call (or since creation) and starts
    timing the next step.
    """

    def __init__(self):
        self.start_time = self.last_start = time.time()

    def step_time(self):
        now = time.time()
        elapsed, self.last_start = now - self.last_start, now
        return elapsed

    def total_time(self):
        return time.time() - self.start_time


def wrap(message, width=80, indent=0):
    """Dedent and reflow a (possibly triple-quoted) message."""
    message = " ".join(textwrap.dedent(message).split())
    prefix = " " * indent
    return "\n".join(
        textwrap.wrap(
            message, width=width, initial_indent=prefix, subsequent_indent=prefix
        )
    )


def optional_bound(val):
    """
    Translate a raw capacity bound from an input table into an explicit
    optional value. Missing values and non-positive values (older input files
    use -1 to mean "no limit") become None.

    >>> optional_bound(40.0), optional_bound(-1), optional_bound(0), optional_bound(None)
    (40.0, None, None, None)
    >>> optional_bound(".")
    """
    if val is None or isinstance(val, str):
        return None
    return val if val > 0 else None


def keep_defined_bounds(data, param_name, set_name):
    """
    Drop undefined entries (see optional_bound) from the DataPortal data for an
    optional bound parameter, then populate the set that flags which elements
    have a bound. Returns the list of bounded elements.
    """
    bounds = {}
    for key, raw in data.data().get(param_name, {}).items():
        bound = optional_bound(raw)
        if bound is not None:
            bounds[key] = bound
    data.data()[param_name] = bounds
    data.data()[set_name] = {None: list(bounds)}
    return list(bounds)


def check_mandatory_components(model, *mandatory_components):
    """
    Raise a ValueError if any of the named sets or params lacks data.

    Sets must be non-empty. Indexed params must have a value for every
    member of their index set, so don't use this for params with defaults;
    an indexed param over an empty set passes. Scalar params must have a
    value. Indexed sets are not supported.

    This is normally called through ChargeCapAbstractModel.min_data_check().
    """
    for name in mandatory_components:
        obj = getattr(model, name)
        if obj.ctype is Set and not obj.is_indexed():
            if len(obj) == 0:
                raise ValueError(f"No data is defined for the mandatory set '{name}'.")
        elif obj.ctype is Param and obj.is_indexed():
            missing = [k for k in obj.index_set() if k not in obj]
            if missing:
                file, col = getattr(model, "param_column_map", {}).get(
                    name, (None, None)
                )
                if file is None:
                    loc = "calculated internally"
                elif col == name:
                    loc = f"read from {file}"
                else:
                    loc = f"read from '{col}' column in {file}"
                raise ValueError(
                    "Values are not provided for every element of the "
                    f"mandatory parameter '{name}' ({loc}). "
                    f"Missing data for {len(missing)} values, "
                    f"including: {missing[:10]}"
                )
        elif obj.ctype is Param:
            if obj.value is None:
                raise ValueError(f"Value not provided for mandatory parameter '{name}'")
        else:
            raise ValueError(
                f"Error! Object type {type(obj).__name__} not recognized for "
                f"model element '{name}'."
            )
    return True


class InputError(Exception):
    """Exception raised for errors in the input files."""


def apply_input_aliases(data, path):
    """
    Substitute an alternative input file given with --input-aliases, e.g.,
    --input-aliases storage_asymmetric.csv=storage_asymmetric.high_cost.csv

    An alias of 'none' maps the file to an empty path, so optional files are
    skipped. This lets users run sensitivities without copying the whole
    inputs directory.
    """
    if not hasattr(data, "file_aliases"):
        data.file_aliases = dict(
            pair.split("=", 1)
            for pair in getattr(data._model.options, "input_aliases", [])
        )

    root, filename = os.path.split(path)
    alias = data.file_aliases.get(filename)
    if alias is None:
        return path
    if alias.lower() == "none":
        new_path = ""
    else:
        new_path = os.path.join(root, alias)
        if not os.path.isfile(new_path):
            raise ValueError(
                f'Alias "{new_path}" specified for file "{path}" does not exist. '
                f"Specify {filename}=none if you want to supply no data."
            )
    data._model.logger.info(f"Applying alias {path}={new_path}")
    return new_path


def load_aug(data, optional=False, optional_params=[], **kwargs):
    """
    Load a .csv or .tab table into a DataPortal (bound as data.load_aug), with
    a few extras over DataPortal.load:

    * optional: the whole file may be absent or have no data rows, in which
      case its sets and params keep their defaults.
    * optional_params: names (or Param objects) of columns that may be
      missing. Params with defaults and all params in optional files are
      added automatically.
    * columns are selected by param name, after as many index columns as
      the index set has dimensions.
    * set=...: a one-column list of set members. A list with a heading
      but no rows gives an empty set.
    """
    path = kwargs["filename"] = apply_input_aliases(data, kwargs["filename"])
    if optional and not os.path.isfile(path):
        return

    separators = {"csv": ",", "tab": "\t", "tsv": "\t"}
    suffix = os.path.splitext(path)[1].lstrip(".")
    if suffix not in separators:
        raise InputError(
            f"Unrecognized file type for input file {path}. Allowed file types "
            "are .csv (preferred), .tab or .tsv."
        )
    with open(path) as infile:
        headers_line = infile.readline()
        has_data_rows = infile.readline() != ""
    if optional and headers_line == "":
        return
    headers = headers_line.strip().split(separators[suffix])

    if "set" in kwargs:
        if has_data_rows:
            kwargs.setdefault("format", "set")
            data.load(**kwargs)
        else:
            # a list with only its heading is an empty set
            data[kwargs["set"].name] = {None: []}
        return

    params = kwargs.get("param", [])
    params = list(params) if isinstance(params, (list, tuple)) else [params]
    kwargs["param"] = params
    optional_names = {p if isinstance(p, str) else p.name for p in optional_params}
    optional_names.update(
        p.name for p in params if optional or p.default() is not NoValue
    )

    if "index" in kwargs:
        num_indexes = kwargs["index"].dimen
    elif params:
        num_indexes = params[0].index_set().dimen if params[0].is_indexed() else 0
    else:
        num_indexes = 0
    if num_indexes is UnknownSetDimen:
        raise ValueError(
            f"Set {params[0].index_set()} has unknown dimen; unable to infer "
            f"number of index columns to read from {path}. Use the dimen=n "
            "argument when calling Set() to avoid this error."
        )

    # index columns come first; other columns are named after their params
    select = headers[:num_indexes]
    selected_params = []
    for p in params:
        if p.name in headers:
            select.append(p.name)
            selected_params.append(p)
        elif p.name not in optional_names:
            raise InputError(f"Required column {p.name} not found in file {path}.")
    kwargs["select"] = select
    kwargs["param"] = selected_params

    # remember where each param came from, for min_data_check messages
    if not hasattr(data._model, "param_column_map"):
        data._model.param_column_map = {}
    for p in selected_params:
        data._model.param_column_map[p.name] = (path, p.name)

    if optional and not has_data_rows:
        # skip only after the column headings have been validated
        return
    try:
        data.load(**kwargs)
    except Exception as e:
        # Pyomo's messages rarely say which file was being read
        data._model.logger.error(f"\n{'=' * 80}\nError reading {path}")
        if str(e) == "string index out of range":
            data._model.logger.error(
                wrap(
                    """
                    This is usually caused by empty cells or rows with the
                    wrong number of cells. Use a single period (.) for cells
                    with no data.
                    """
                )
            )
        raise


def _list_action(tag=None):
    """
    Build an argparse action that accumulates values in a list across
    repeated flags. With a tag, each call adds a (tag, values) pair instead.
    """

    class ListAction(argparse.Action):
        def __call__(self, parser, namespace, values, option_string=None):
            items = list(getattr(namespace, self.dest) or [])
            if tag is None:
                items.extend(values)
            else:
                items.append((tag, values))
            setattr(namespace, self.dest, items)

    return ListAction


class _ArgumentParser(argparse.ArgumentParser):
    """
    ArgumentParser with 'extend', 'include' and 'exclude' actions that build
    lists over multiple uses of the same flag.
    """

    def __init__(self, *args, **kwargs):
        super(_ArgumentParser, self).__init__(*args, **kwargs)
        self.register("action", "extend", _list_action())
        self.register("action", "include", _list_action("include"))
        self.register("action", "exclude", _list_action("exclude"))


def approx_equal(a, b, tolerance=0.01):
    return abs(a - b) <= (abs(a) + abs(b)) / 2.0 * tolerance


def make_log_file_path(logs_dir):
    """
    Create an empty log file in logs_dir named after the current date and
    time and return its path. Microseconds are added to the name if a file
    from the same second already exists.
    """
    os.makedirs(logs_dir, exist_ok=True)
    now = datetime.datetime.now()
    for fmt in ("%Y-%m-%d_%H-%M-%S", "%Y-%m-%d_%H-%M-%S.%f"):
        path = os.path.join(logs_dir, now.strftime(fmt) + ".log")
        try:
            os.close(os.open(path, os.O_CREAT | os.O_EXCL))
            return path
        except FileExistsError:
            now = datetime.datetime.now()
    raise FileExistsError(f"Unable to create a unique log file in {logs_dir}.")
