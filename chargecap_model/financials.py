# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Defines financial parameters and the cost-minimization objective for the
charge capacity model.

"""
import os

from pyomo.environ import *


def uniform_series_to_present_value(dr, t):
    """
    Returns a coefficient to convert a uniform series of payments over t
    periods to a present value in the first period using a discount rate
    of dr.

    >>> print("Net present value of a $10 / yr annuity paid for 20 years, "
    ...       "assuming a 5 percent discount rate is ${npv:0.2f}".format(
    ...           npv=10 * uniform_series_to_present_value(.05, 20)))
    Net present value of a $10 / yr annuity paid for 20 years, assuming a 5 percent discount rate is $124.62
    """
    return t if dr == 0 else (1 - (1 + dr) ** -t) / dr


def stage_opex_multiplier(dr, stage_length):
    """
    Returns the factor that converts one year of operating costs into the
    discounted total for every year of a planning stage, when payments are
    made at the start of each year. This is the sum of 1 / (1 + dr)^(i - 1)
    for i = 1 .. stage_length.

    A single-year stage or a zero discount rate gives an undiscounted total:

    >>> stage_opex_multiplier(0.07, 1), stage_opex_multiplier(0, 5)
    (1.0, 5.0)
    >>> round(stage_opex_multiplier(0.05, 3), 6)
    2.85941

    It equals the annuity present value with the first payment at time zero:

    >>> abs(stage_opex_multiplier(0.07, 20)
    ...     - 1.07 * uniform_series_to_present_value(0.07, 20)) < 1e-9
    True
    """
    return float(sum(1 / (1 + dr) ** (i - 1) for i in range(1, int(stage_length) + 1)))


def define_arguments(argparser):
    argparser.add_argument(
        "--multi-stage",
        default=False,
        action="store_true",
        dest="multi_stage",
        help=(
            "Build the model as one stage of a multi-stage capacity expansion "
            "study. Existing capacity becomes a decision pinned to its input "
            "value and the objective is scaled by opex_multiplier."
        ),
    )


def define_dynamic_lists(mod):
    """
    Cost_Components is a list of components that contribute to overall
    system costs. Other modules may add elements to this list. Each
    component in the list must be a scalar Expression (or Param)
    specified in annualized real dollars per year. Components must already
    be divided by opex_multiplier when the model is built in multi-stage
    mode if they should not be scaled by it.
    """
    mod.Cost_Components = []


def define_components(mod):
    """
    Augments a Pyomo abstract model object with the parameters used to
    annualize and scale costs.

    discount_rate is the annual real discount rate used to convert future
    dollars into present value. Defaults to 0.

    stage_length_years is the number of years represented by one stage of a
    multi-stage study. Defaults to 1.

    opex_multiplier is the factor that the objective is multiplied by in
    multi-stage mode to represent operating costs for every year of the
    stage. It is computed from discount_rate and stage_length_years by
    stage_opex_multiplier(), unless a value is given directly in
    financials.csv. It is only applied when the --multi-stage flag is set.

    """
    mod.discount_rate = Param(within=NonNegativeReals, default=0.0)
    mod.stage_length_years = Param(within=PositiveIntegers, default=1)
    mod.opex_multiplier = Param(
        within=PositiveReals,
        initialize=lambda m: stage_opex_multiplier(
            value(m.discount_rate), value(m.stage_length_years)
        ),
    )


def define_dynamic_components(mod):
    """
    Adds components to a Pyomo abstract model object to summarize all
    system costs. Other modules register cost components in the
    Cost_Components dynamic list; this is called after define_components()
    so that they have a chance to do that first.

    SystemCost is an expression that sums all cost components. In
    multi-stage mode, the sum is multiplied by opex_multiplier.

    Minimize_System_Cost is the objective function that seeks to minimize
    SystemCost.

    """

    def calc_system_cost(m):
        total = sum(getattr(m, c) for c in m.Cost_Components)
        if m.options.multi_stage:
            total = total * m.opex_multiplier
        return total

    # Objectives can't be used in other expressions, so the total is defined
    # separately as an expression for reporting.
    mod.SystemCost = Expression(rule=calc_system_cost)
    mod.Minimize_System_Cost = Objective(rule=lambda m: m.SystemCost, sense=minimize)


def load_inputs(mod, chargecap_data, inputs_dir):
    """
    Import base financial data from financials.csv. This file is optional
    and has one row of data with any of the columns

    discount_rate, stage_length_years, opex_multiplier

    Values given for opex_multiplier override the calculated value.
    """
    chargecap_data.load_aug(
        filename=os.path.join(inputs_dir, "financials.csv"),
        optional=True,
        param=(mod.discount_rate, mod.stage_length_years, mod.opex_multiplier),
    )
