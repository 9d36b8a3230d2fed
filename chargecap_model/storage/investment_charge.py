# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Defines charge capacity investment and retirement decisions for asymmetric
storage resources, the resulting capacity and cost expressions, and the
charge capacity limits.

The components are built in four steps that each take the model as an
argument and return a dict of the components they created:

1. declare_charge_capacity_variables
2. define_charge_capacity_expressions
3. define_charge_cost_expressions
4. define_charge_capacity_constraints

Existing charge capacity comes from one of two sources, chosen once when the
model is defined: the input data (StaticExistingChargeCap), or a stage-level
decision pinned to the input data (StageExistingChargeCapSource) when the
model is built with --multi-stage.
"""
import os
from enum import Enum

import pandas as pd
from pyomo.environ import *

dependencies = (
    "chargecap_model.financials",
    "chargecap_model.balancing.load_zones",
    "chargecap_model.storage.asymmetric",
)


class ChargeCapacityMode(Enum):
    """Ways a resource's total charge capacity can differ from existing capacity."""

    BOTH = "both"
    NEW_ONLY = "new_only"
    RETIRE_ONLY = "retire_only"
    FIXED = "fixed"

    @classmethod
    def from_eligibility(cls, can_build, can_retire):
        """
        >>> ChargeCapacityMode.from_eligibility(True, False)
        <ChargeCapacityMode.NEW_ONLY: 'new_only'>
        >>> ChargeCapacityMode.from_eligibility(False, False)
        <ChargeCapacityMode.FIXED: 'fixed'>
        """
        if can_build and can_retire:
            return cls.BOTH
        elif can_build:
            return cls.NEW_ONLY
        elif can_retire:
            return cls.RETIRE_ONLY
        else:
            return cls.FIXED


# total charge capacity for each mode, given the model, resource and
# existing capacity
_total_charge_cap = {
    ChargeCapacityMode.BOTH: lambda m, y, existing: (
        existing + m.BuildChargeCap[y] - m.RetireChargeCap[y]
    ),
    ChargeCapacityMode.NEW_ONLY: lambda m, y, existing: existing + m.BuildChargeCap[y],
    ChargeCapacityMode.RETIRE_ONLY: lambda m, y, existing: (
        existing - m.RetireChargeCap[y]
    ),
    ChargeCapacityMode.FIXED: lambda m, y, existing: existing,
}


class StaticExistingChargeCap(object):
    """Existing charge capacity taken directly from stor_existing_charge_cap_mw."""

    def declare(self, mod):
        return {}

    def existing_capacity(self, m, y):
        return m.stor_existing_charge_cap_mw[y]

    def constrain(self, mod):
        return {}

    def scale_fixed_costs(self, m, total):
        return total


class StageExistingChargeCapSource(object):
    """
    Existing charge capacity as a decision variable for one stage of a
    multi-stage study. The variable is pinned to stor_existing_charge_cap_mw;
    the multi-stage driver carries capacity between stages by updating that
    value. Fixed costs are divided by opex_multiplier because the whole
    objective is multiplied by it in multi-stage mode.
    """

    def declare(self, mod):
        mod.StageExistingChargeCap = Var(mod.STORAGE_ASYMMETRIC, within=NonNegativeReals)
        return {"StageExistingChargeCap": mod.StageExistingChargeCap}

    def existing_capacity(self, m, y):
        return m.StageExistingChargeCap[y]

    def constrain(self, mod):
        mod.Fix_Stage_Existing_Charge_Cap = Constraint(
            mod.STORAGE_ASYMMETRIC,
            rule=lambda m, y: (
                m.StageExistingChargeCap[y] == m.stor_existing_charge_cap_mw[y]
            ),
        )
        return {"Fix_Stage_Existing_Charge_Cap": mod.Fix_Stage_Existing_Charge_Cap}

    def scale_fixed_costs(self, m, total):
        return total / m.opex_multiplier


def existing_capacity_source(multi_stage):
    if multi_stage:
        return StageExistingChargeCapSource()
    return StaticExistingChargeCap()


def define_components(mod):
    """

    charge_cap_mode[y] is the ChargeCapacityMode of each resource, based on
    its membership in NEW_CAP_CHARGE and RET_CAP_CHARGE. It is computed once
    and used to choose how total capacity is calculated.

    BuildChargeCap[y in NEW_CAP_CHARGE] is the new charge capacity (MW) to
    build for each eligible resource.

    RetireChargeCap[y in RET_CAP_CHARGE] is the charge capacity (MW) to
    retire for each eligible resource.

    StageExistingChargeCap[y in STORAGE_ASYMMETRIC] is the existing charge
    capacity at the start of the stage. It is only defined when the model is
    built with --multi-stage.

    ExistingChargeCap[y] is an expression for existing charge capacity:
    StageExistingChargeCap[y] in multi-stage mode, otherwise
    stor_existing_charge_cap_mw[y].

    TotalChargeCap[y] is an expression for charge capacity available for
    operation: ExistingChargeCap[y] plus BuildChargeCap[y] (if eligible)
    minus RetireChargeCap[y] (if eligible).

    ChargeCapitalCosts[y], ChargeFixedOMCosts[y] and ChargeFixedCosts[y] are
    annual investment, fixed O&M and combined costs of charge capacity for
    each resource. Investment costs are zero for resources that cannot build
    new capacity; fixed O&M costs apply to total capacity for every resource.

    ZoneChargeCapitalCosts[z], ZoneChargeFixedOMCosts[z] and
    ZoneChargeFixedCosts[z] sum those costs for the resources in each zone.

    TotalChargeCapitalCosts, TotalChargeFixedOMCosts and
    TotalChargeFixedCosts sum the zonal costs across all zones.

    ChargeFixedCostsInObjective is the contribution of charge capacity to
    the objective function: TotalChargeFixedCosts, divided by
    opex_multiplier in multi-stage mode. It is registered in
    Cost_Components.

    Max_Retire_Charge_Cap[y in RET_CAP_CHARGE] keeps retirements within
    existing capacity.

    Fix_Stage_Existing_Charge_Cap[y in STORAGE_ASYMMETRIC] pins
    StageExistingChargeCap to stor_existing_charge_cap_mw in multi-stage
    mode.

    Max_Charge_Cap[y in MAX_CHARGE_CAP_LIMITED] and
    Min_Charge_Cap[y in MIN_CHARGE_CAP_LIMITED] keep TotalChargeCap within
    the resource's charge capacity limits. Existing capacity that already
    lies outside these limits (and cannot be retired or expanded to reach
    them) makes the model infeasible; that is reported by the solver.

    """
    mod.charge_cap_mode = Param(
        mod.STORAGE_ASYMMETRIC,
        within=Any,
        initialize=lambda m, y: ChargeCapacityMode.from_eligibility(
            y in m.NEW_CAP_CHARGE, y in m.RET_CAP_CHARGE
        ),
    )

    existing_source = existing_capacity_source(mod.options.multi_stage)
    declare_charge_capacity_variables(mod, existing_source)
    define_charge_capacity_expressions(mod, existing_source)
    define_charge_cost_expressions(mod, existing_source)
    define_charge_capacity_constraints(mod, existing_source)


def declare_charge_capacity_variables(mod, existing_source):
    mod.BuildChargeCap = Var(mod.NEW_CAP_CHARGE, within=NonNegativeReals)
    mod.RetireChargeCap = Var(mod.RET_CAP_CHARGE, within=NonNegativeReals)
    components = {
        "BuildChargeCap": mod.BuildChargeCap,
        "RetireChargeCap": mod.RetireChargeCap,
    }
    components.update(existing_source.declare(mod))
    return components


def define_charge_capacity_expressions(mod, existing_source):
    mod.ExistingChargeCap = Expression(
        mod.STORAGE_ASYMMETRIC,
        rule=lambda m, y: existing_source.existing_capacity(m, y),
    )
    mod.TotalChargeCap = Expression(
        mod.STORAGE_ASYMMETRIC,
        rule=lambda m, y: _total_charge_cap[m.charge_cap_mode[y]](
            m, y, m.ExistingChargeCap[y]
        ),
    )
    return {
        "ExistingChargeCap": mod.ExistingChargeCap,
        "TotalChargeCap": mod.TotalChargeCap,
    }


def define_charge_cost_expressions(mod, existing_source):
    mod.ChargeCapitalCosts = Expression(
        mod.STORAGE_ASYMMETRIC,
        rule=lambda m, y: (
            m.stor_charge_inv_cost_per_mwyr[y] * m.BuildChargeCap[y]
            if y in m.NEW_CAP_CHARGE
            else 0.0
        ),
    )
    mod.ChargeFixedOMCosts = Expression(
        mod.STORAGE_ASYMMETRIC,
        rule=lambda m, y: m.stor_charge_fixed_om_per_mwyr[y] * m.TotalChargeCap[y],
    )
    mod.ChargeFixedCosts = Expression(
        mod.STORAGE_ASYMMETRIC,
        rule=lambda m, y: m.ChargeCapitalCosts[y] + m.ChargeFixedOMCosts[y],
    )

    components = {
        "ChargeCapitalCosts": mod.ChargeCapitalCosts,
        "ChargeFixedOMCosts": mod.ChargeFixedOMCosts,
        "ChargeFixedCosts": mod.ChargeFixedCosts,
    }
    for cost in ("ChargeCapitalCosts", "ChargeFixedOMCosts", "ChargeFixedCosts"):
        zone_name = "Zone" + cost
        total_name = "Total" + cost
        zone_cost = Expression(mod.LOAD_ZONES, rule=zone_sum_rule(cost))
        setattr(mod, zone_name, zone_cost)
        total_cost = Expression(rule=system_sum_rule(zone_name))
        setattr(mod, total_name, total_cost)
        components[zone_name] = zone_cost
        components[total_name] = total_cost

    mod.ChargeFixedCostsInObjective = Expression(
        rule=lambda m: existing_source.scale_fixed_costs(m, m.TotalChargeFixedCosts)
    )
    mod.Cost_Components.append("ChargeFixedCostsInObjective")
    components["ChargeFixedCostsInObjective"] = mod.ChargeFixedCostsInObjective
    return components


def zone_sum_rule(cost_name):
    """Rule summing the per-resource cost_name over the resources in a zone."""
    return lambda m, z: sum(
        getattr(m, cost_name)[y] for y in m.ASYM_STORAGE_IN_ZONE[z]
    )


def system_sum_rule(zone_cost_name):
    """Rule summing the zonal zone_cost_name over all load zones."""
    return lambda m: sum(getattr(m, zone_cost_name)[z] for z in m.LOAD_ZONES)


def define_charge_capacity_constraints(mod, existing_source):
    mod.Max_Retire_Charge_Cap = Constraint(
        mod.RET_CAP_CHARGE,
        rule=lambda m, y: m.RetireChargeCap[y] <= m.ExistingChargeCap[y],
    )
    components = {"Max_Retire_Charge_Cap": mod.Max_Retire_Charge_Cap}
    components.update(existing_source.constrain(mod))
    mod.Max_Charge_Cap = Constraint(
        mod.MAX_CHARGE_CAP_LIMITED,
        rule=lambda m, y: m.TotalChargeCap[y] <= m.stor_max_charge_cap_mw[y],
    )
    mod.Min_Charge_Cap = Constraint(
        mod.MIN_CHARGE_CAP_LIMITED,
        rule=lambda m, y: m.TotalChargeCap[y] >= m.stor_min_charge_cap_mw[y],
    )
    components["Max_Charge_Cap"] = mod.Max_Charge_Cap
    components["Min_Charge_Cap"] = mod.Min_Charge_Cap
    return components


def charge_cap_limit_conflicts(m):
    """
    Return a list of (constraint, resource, existing capacity, limit) for
    resources whose existing charge capacity lies outside a limit that their
    eligibility does not allow them to reach.
    """
    conflicts = []
    for y in m.MAX_CHARGE_CAP_LIMITED:
        existing = m.stor_existing_charge_cap_mw[y]
        if y not in m.RET_CAP_CHARGE and existing > m.stor_max_charge_cap_mw[y]:
            conflicts.append(
                ("Max_Charge_Cap", y, existing, m.stor_max_charge_cap_mw[y])
            )
    for y in m.MIN_CHARGE_CAP_LIMITED:
        existing = m.stor_existing_charge_cap_mw[y]
        if y not in m.NEW_CAP_CHARGE and existing < m.stor_min_charge_cap_mw[y]:
            conflicts.append(
                ("Min_Charge_Cap", y, existing, m.stor_min_charge_cap_mw[y])
            )
    return conflicts


def report_infeasibility(m):
    for constraint, y, existing, limit in charge_cap_limit_conflicts(m):
        m.logger.error(
            f"{constraint}[{y}] cannot be met: existing charge capacity "
            f"{existing} MW is outside the limit of {limit} MW."
        )


def post_solve(instance, outdir):
    """
    Export charge capacity results.

    charge_capacity.csv shows existing, new, retired and total charge
    capacity and the annual costs of each asymmetric storage resource.

    charge_costs_by_zone.csv shows the annual charge capacity costs in each
    load zone.
    """
    m = instance
    resources = sorted(m.STORAGE_ASYMMETRIC) if m.options.sorted_output else list(
        m.STORAGE_ASYMMETRIC
    )
    charge_cap_dat = [
        {
            "STORAGE_ASYMMETRIC": y,
            "load_zone": m.stor_load_zone[y],
            "capacity_mode": m.charge_cap_mode[y].value,
            "ExistingChargeCap": value(m.ExistingChargeCap[y]),
            "BuildChargeCap": value(m.BuildChargeCap[y])
            if y in m.NEW_CAP_CHARGE
            else 0.0,
            "RetireChargeCap": value(m.RetireChargeCap[y])
            if y in m.RET_CAP_CHARGE
            else 0.0,
            "TotalChargeCap": value(m.TotalChargeCap[y]),
            "ChargeCapitalCosts": value(m.ChargeCapitalCosts[y]),
            "ChargeFixedOMCosts": value(m.ChargeFixedOMCosts[y]),
            "ChargeFixedCosts": value(m.ChargeFixedCosts[y]),
        }
        for y in resources
    ]
    df = pd.DataFrame(
        charge_cap_dat,
        columns=[
            "STORAGE_ASYMMETRIC",
            "load_zone",
            "capacity_mode",
            "ExistingChargeCap",
            "BuildChargeCap",
            "RetireChargeCap",
            "TotalChargeCap",
            "ChargeCapitalCosts",
            "ChargeFixedOMCosts",
            "ChargeFixedCosts",
        ],
    )
    df.set_index(["STORAGE_ASYMMETRIC"], inplace=True)
    df.to_csv(os.path.join(outdir, "charge_capacity.csv"))

    zone_dat = [
        {
            "LOAD_ZONE": z,
            "zone_dbid": m.zone_dbid[z],
            "ZoneChargeCapitalCosts": value(m.ZoneChargeCapitalCosts[z]),
            "ZoneChargeFixedOMCosts": value(m.ZoneChargeFixedOMCosts[z]),
            "ZoneChargeFixedCosts": value(m.ZoneChargeFixedCosts[z]),
        }
        for z in m.LOAD_ZONES
    ]
    df = pd.DataFrame(
        zone_dat,
        columns=[
            "LOAD_ZONE",
            "zone_dbid",
            "ZoneChargeCapitalCosts",
            "ZoneChargeFixedOMCosts",
            "ZoneChargeFixedCosts",
        ],
    )
    df.set_index(["LOAD_ZONE"], inplace=True)
    df.to_csv(os.path.join(outdir, "charge_costs_by_zone.csv"))
