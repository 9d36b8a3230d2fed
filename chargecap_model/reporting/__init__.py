# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""

Results that every model run needs.

Modules that define components export their own detailed tables from their
post_solve() functions. This module writes one table per decision variable
(and optionally per expression), the total system cost and the
contribution of each registered cost component.

"""
import csv
import os

from pyomo.environ import value, Var, Expression

from chargecap_model.utilities import UnknownSetDimen

dependencies = "chargecap_model.financials"

csv.register_dialect(
    "chargecap-csv",
    delimiter=",",
    lineterminator="\n",
    doublequote=False,
    escapechar="\\",
    quotechar='"',
    quoting=csv.QUOTE_MINIMAL,
    skipinitialspace=False,
)


def define_arguments(argparser):
    argparser.add_argument(
        "--skip-generic-output",
        default=False,
        action="store_true",
        dest="skip_generic_output",
        help="Skip exporting one table per variable",
    )
    argparser.add_argument(
        "--save-expressions",
        "--save-expression",
        dest="save_expressions",
        nargs="+",
        default=[],
        action="extend",
        help="Expressions to save along with the variables, or 'all'.",
    )


def post_solve(instance, outdir):
    if not instance.options.skip_generic_output:
        save_generic_results(instance, outdir, instance.options.sorted_output)
    save_total_cost_value(instance, outdir)
    save_cost_components(instance, outdir)


def save_generic_results(instance, outdir, sorted_output):
    components = list(instance.component_objects(Var))
    if "all" in instance.options.save_expressions:
        components += list(instance.component_objects(Expression))
    else:
        components += [getattr(instance, c) for c in instance.options.save_expressions]

    missing_val_list = []
    for component in components:
        with open(os.path.join(outdir, f"{component.name}.csv"), "w") as fh:
            writer = csv.writer(fh, dialect="chargecap-csv")
            if not component.is_indexed():
                writer.writerow([component.name])
                writer.writerow([get_value(component, missing_val_list)])
                continue
            index_set = component.index_set()
            if index_set.dimen is UnknownSetDimen:
                raise ValueError(
                    f"Set {index_set.name} has unknown dimen; unable to infer "
                    f"number of index columns to write to {component.name}.csv."
                )
            writer.writerow(
                [f"{index_set.name}_{i + 1}" for i in range(index_set.dimen)]
                + [component.name]
            )
            # rows follow the order of the index set unless sorting is requested
            items = sorted(component.items()) if sorted_output else component.items()
            for key, obj in items:
                key = key if isinstance(key, tuple) else (key,)
                writer.writerow(key + (get_value(obj, missing_val_list),))

    if missing_val_list:
        instance.logger.warning(
            f"WARNING: {len(missing_val_list)} variable(s) have not been "
            "assigned values. This usually means a variable is not used in "
            "any constraint or the objective function. These include "
            f"{missing_val_list[:10]}."
        )


def get_value(obj, missing_val_list=None):
    """
    Return the value of one element of a Var or Expression. Division by zero
    gives nan and unassigned variables give None (and are added to
    missing_val_list).
    """
    if not hasattr(obj, "expr") and getattr(obj, "value", 0) is None:
        # reading obj.value avoids the error value() logs for unset variables
        if missing_val_list is not None:
            missing_val_list.append(obj.name)
        return None
    try:
        return value(obj)
    except ZeroDivisionError:
        return float("nan")


def save_total_cost_value(instance, outdir):
    with open(os.path.join(outdir, "total_cost.txt"), "w") as fh:
        fh.write("{}\n".format(value(instance.SystemCost)))


def save_cost_components(m, outdir):
    """
    Write each component of the total system cost, both as registered
    (annual_cost) and as it enters SystemCost (system_cost), which includes
    the opex multiplier in multi-stage mode.
    """
    scale = value(m.opex_multiplier) if m.options.multi_stage else 1.0
    components = (
        sorted(m.Cost_Components) if m.options.sorted_output else m.Cost_Components
    )
    with open(os.path.join(outdir, "cost_components.csv"), "w") as fh:
        writer = csv.writer(fh, dialect="chargecap-csv")
        writer.writerow(["component", "annual_cost", "system_cost"])
        for name in components:
            cost = value(getattr(m, name))
            writer.writerow([name, "{:.16g}".format(cost), "{:.16g}".format(cost * scale)])
