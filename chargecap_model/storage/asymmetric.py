# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Defines asymmetric storage resources, i.e., storage whose charging power
capacity is sized independently of its discharging power capacity, along
with the attributes and eligibility sets used for charge capacity
investment decisions.
"""
import os

from pyomo.environ import *

from chargecap_model.utilities import keep_defined_bounds

dependencies = "chargecap_model.financials", "chargecap_model.balancing.load_zones"


def define_components(mod):
    """

    STORAGE_ASYMMETRIC is the set of storage resources whose charge capacity
    is modeled separately from their discharge capacity. Members are usually
    integer resource ids, abbreviated as y for indexes.

    stor_load_zone[y] is the load zone where each resource is located.

    stor_existing_charge_cap_mw[y] is the charge capacity (MW) already
    installed at the start of the planning stage.

    stor_charge_inv_cost_per_mwyr[y] is the annualized investment cost per MW
    of new charge capacity ($/MW-yr).

    stor_charge_fixed_om_per_mwyr[y] is the fixed operation and maintenance
    cost per MW of total charge capacity ($/MW-yr). It applies to existing
    capacity as well as new capacity.

    MAX_CHARGE_CAP_LIMITED is the subset of STORAGE_ASYMMETRIC that has a
    maximum charge capacity, and stor_max_charge_cap_mw[y] is that limit.
    MIN_CHARGE_CAP_LIMITED and stor_min_charge_cap_mw[y] do the same for
    minimum charge capacity. Input files may specify "." or any value <= 0
    (older files use -1) to leave a resource unconstrained; those resources
    are left out of the limited sets when the data are loaded.

    stor_new_build[y] and stor_can_retire[y] are optional flags (0 or 1)
    showing whether a resource may add or retire charge capacity. Both
    default to 0.

    NEW_CAP_CHARGE is the set of resources eligible for new charge capacity
    and RET_CAP_CHARGE is the set of resources eligible to retire charge
    capacity. By default these are filled from stor_new_build and
    stor_can_retire, but they can also be given directly as data, which
    overrides the flags.

    ASYM_STORAGE_IN_ZONE[z in LOAD_ZONES] is an indexed set of the asymmetric
    storage resources located in each load zone. Zones without any resources
    have an empty set.

    """
    mod.STORAGE_ASYMMETRIC = Set(dimen=1)
    mod.stor_load_zone = Param(mod.STORAGE_ASYMMETRIC, within=mod.LOAD_ZONES)
    mod.stor_existing_charge_cap_mw = Param(
        mod.STORAGE_ASYMMETRIC, within=NonNegativeReals
    )
    mod.stor_charge_inv_cost_per_mwyr = Param(
        mod.STORAGE_ASYMMETRIC, within=NonNegativeReals
    )
    mod.stor_charge_fixed_om_per_mwyr = Param(
        mod.STORAGE_ASYMMETRIC, within=NonNegativeReals
    )
    mod.min_data_check(
        "stor_load_zone",
        "stor_existing_charge_cap_mw",
        "stor_charge_inv_cost_per_mwyr",
        "stor_charge_fixed_om_per_mwyr",
    )

    mod.MAX_CHARGE_CAP_LIMITED = Set(dimen=1, within=mod.STORAGE_ASYMMETRIC)
    mod.stor_max_charge_cap_mw = Param(
        mod.MAX_CHARGE_CAP_LIMITED, within=PositiveReals
    )
    mod.MIN_CHARGE_CAP_LIMITED = Set(dimen=1, within=mod.STORAGE_ASYMMETRIC)
    mod.stor_min_charge_cap_mw = Param(
        mod.MIN_CHARGE_CAP_LIMITED, within=PositiveReals
    )

    mod.stor_new_build = Param(mod.STORAGE_ASYMMETRIC, within=Boolean, default=False)
    mod.stor_can_retire = Param(mod.STORAGE_ASYMMETRIC, within=Boolean, default=False)
    mod.NEW_CAP_CHARGE = Set(
        dimen=1,
        within=mod.STORAGE_ASYMMETRIC,
        initialize=lambda m: [y for y in m.STORAGE_ASYMMETRIC if m.stor_new_build[y]],
    )
    mod.RET_CAP_CHARGE = Set(
        dimen=1,
        within=mod.STORAGE_ASYMMETRIC,
        initialize=lambda m: [y for y in m.STORAGE_ASYMMETRIC if m.stor_can_retire[y]],
    )

    def ASYM_STORAGE_IN_ZONE_init(m, z):
        if not hasattr(m, "asym_storage_in_zone_dict"):
            m.asym_storage_in_zone_dict = {_z: [] for _z in m.LOAD_ZONES}
            for y in m.STORAGE_ASYMMETRIC:
                m.asym_storage_in_zone_dict[m.stor_load_zone[y]].append(y)
        result = m.asym_storage_in_zone_dict.pop(z)
        if not m.asym_storage_in_zone_dict:
            del m.asym_storage_in_zone_dict
        return result

    mod.ASYM_STORAGE_IN_ZONE = Set(
        mod.LOAD_ZONES,
        dimen=1,
        within=mod.STORAGE_ASYMMETRIC,
        initialize=ASYM_STORAGE_IN_ZONE_init,
    )


def load_inputs(mod, chargecap_data, inputs_dir):
    """
    Import asymmetric storage data. The following files are expected in the
    input directory. Index columns need to be on the left, but the data
    columns can be in any order. Extra columns will be ignored during
    import, and optional columns can be dropped. If you don't want to
    specify data for any optional parameter, use a dot . for its value.
    Optional columns and files are noted with a *.

    storage_asymmetric.csv
        STORAGE_ASYMMETRIC, stor_load_zone, stor_existing_charge_cap_mw,
        stor_charge_inv_cost_per_mwyr, stor_charge_fixed_om_per_mwyr,
        stor_max_charge_cap_mw*, stor_min_charge_cap_mw*, stor_new_build*,
        stor_can_retire*

    new_cap_charge.csv*
        NEW_CAP_CHARGE

    ret_cap_charge.csv*
        RET_CAP_CHARGE

    The last two files, if present, list the resources eligible for new or
    retired charge capacity and override stor_new_build and stor_can_retire.
    A file with only its heading row means no resource is eligible.

    """
    chargecap_data.load_aug(
        filename=os.path.join(inputs_dir, "storage_asymmetric.csv"),
        index=mod.STORAGE_ASYMMETRIC,
        optional_params=["stor_max_charge_cap_mw", "stor_min_charge_cap_mw"],
        param=(
            mod.stor_load_zone,
            mod.stor_existing_charge_cap_mw,
            mod.stor_charge_inv_cost_per_mwyr,
            mod.stor_charge_fixed_om_per_mwyr,
            mod.stor_max_charge_cap_mw,
            mod.stor_min_charge_cap_mw,
            mod.stor_new_build,
            mod.stor_can_retire,
        ),
    )
    # Bounds were read for every resource; keep only the real ones and use
    # them to define the limited sets.
    keep_defined_bounds(
        chargecap_data, "stor_max_charge_cap_mw", "MAX_CHARGE_CAP_LIMITED"
    )
    keep_defined_bounds(
        chargecap_data, "stor_min_charge_cap_mw", "MIN_CHARGE_CAP_LIMITED"
    )
    chargecap_data.load_aug(
        filename=os.path.join(inputs_dir, "new_cap_charge.csv"),
        optional=True,
        set=mod.NEW_CAP_CHARGE,
    )
    chargecap_data.load_aug(
        filename=os.path.join(inputs_dir, "ret_cap_charge.csv"),
        optional=True,
        set=mod.RET_CAP_CHARGE,
    )
