# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

import logging
import os
import shutil
import tempfile
import unittest

from pyomo.environ import value
from testfixtures import compare

from chargecap_model.utilities import ChargeCapAbstractModel
from chargecap_model.storage.investment_charge import (
    ChargeCapacityMode,
    StaticExistingChargeCap,
    StageExistingChargeCapSource,
    charge_cap_limit_conflicts,
    existing_capacity_source,
)

MODULES = [
    "chargecap_model.financials",
    "chargecap_model.balancing.load_zones",
    "chargecap_model.storage.asymmetric",
    "chargecap_model.storage.investment_charge",
]

EXAMPLE_INPUTS = os.path.join(
    os.path.dirname(__file__), "..", "examples", "asymmetric_storage", "inputs"
)


def build_instance(
    resources,
    zones=("z1",),
    multi_stage=False,
    max_caps={},
    min_caps={},
    opex_multiplier=None,
    extra_data={},
):
    """
    Construct an instance from in-memory data. resources maps each resource
    id to a tuple of (zone, existing MW, investment cost, fixed O&M cost,
    can build, can retire).
    """
    args = ["--multi-stage"] if multi_stage else []
    mod = ChargeCapAbstractModel(module_list=MODULES, args=args)
    data = {
        "LOAD_ZONES": {None: list(zones)},
        "STORAGE_ASYMMETRIC": {None: list(resources)},
        "stor_load_zone": {y: r[0] for y, r in resources.items()},
        "stor_existing_charge_cap_mw": {y: r[1] for y, r in resources.items()},
        "stor_charge_inv_cost_per_mwyr": {y: r[2] for y, r in resources.items()},
        "stor_charge_fixed_om_per_mwyr": {y: r[3] for y, r in resources.items()},
        "stor_new_build": {y: r[4] for y, r in resources.items()},
        "stor_can_retire": {y: r[5] for y, r in resources.items()},
        "MAX_CHARGE_CAP_LIMITED": {None: list(max_caps)},
        "stor_max_charge_cap_mw": dict(max_caps),
        "MIN_CHARGE_CAP_LIMITED": {None: list(min_caps)},
        "stor_min_charge_cap_mw": dict(min_caps),
    }
    if opex_multiplier is not None:
        data["opex_multiplier"] = {None: opex_multiplier}
    data.update(extra_data)
    return mod.create_instance(data={None: data})


def is_satisfied(con, tol=1e-9):
    body = value(con.body)
    if con.lower is not None and body < value(con.lower) - tol:
        return False
    if con.upper is not None and body > value(con.upper) + tol:
        return False
    return True


class InvestmentChargeTest(unittest.TestCase):
    def test_new_build_only_resource(self):
        m = build_instance({1: ("z1", 100, 10.0, 2.0, True, False)})
        compare(list(m.BuildChargeCap), [1])
        compare(len(m.RetireChargeCap), 0)
        compare(len(m.Max_Retire_Charge_Cap), 0)
        compare(len(m.Max_Charge_Cap), 0)
        compare(len(m.Min_Charge_Cap), 0)
        self.assertFalse(hasattr(m, "StageExistingChargeCap"))

        m.BuildChargeCap[1].fix(30)
        compare(value(m.TotalChargeCap[1]), 130)
        # investment on new capacity plus fixed O&M on all capacity
        compare(value(m.ChargeCapitalCosts[1]), 300.0)
        compare(value(m.ChargeFixedOMCosts[1]), 260.0)
        compare(value(m.ChargeFixedCostsInObjective), 560.0)
        compare(value(m.SystemCost), 560.0)

    def test_retire_only_resource_with_max_limit(self):
        m = build_instance(
            {1: ("z1", 50, 10.0, 2.0, False, True)}, max_caps={1: 40.0}
        )
        compare(len(m.BuildChargeCap), 0)
        compare(list(m.RetireChargeCap), [1])
        compare(value(m.ChargeCapitalCosts[1]), 0.0)

        # retirement is limited to existing capacity and total capacity to
        # the maximum, so at least 10 MW must be retired
        for retired, ok in [(0, False), (9, False), (10, True), (50, True)]:
            m.RetireChargeCap[1].fix(retired)
            compare(
                is_satisfied(m.Max_Retire_Charge_Cap[1])
                and is_satisfied(m.Max_Charge_Cap[1]),
                ok,
            )
        m.RetireChargeCap[1].fix(51)
        self.assertFalse(is_satisfied(m.Max_Retire_Charge_Cap[1]))
        compare(value(m.TotalChargeCap[1]), -1)

    def test_multi_stage_with_no_eligible_resources(self):
        m = build_instance(
            {1: ("z1", 80, 10.0, 5.0, False, False)},
            multi_stage=True,
            opex_multiplier=4.0,
        )
        compare(len(m.BuildChargeCap), 0)
        compare(len(m.RetireChargeCap), 0)
        compare(list(m.StageExistingChargeCap), [1])
        compare(list(m.Fix_Stage_Existing_Charge_Cap), [1])

        m.StageExistingChargeCap[1].fix(70)
        self.assertFalse(is_satisfied(m.Fix_Stage_Existing_Charge_Cap[1]))
        m.StageExistingChargeCap[1].fix(80)
        self.assertTrue(is_satisfied(m.Fix_Stage_Existing_Charge_Cap[1]))
        compare(value(m.TotalChargeCap[1]), 80)
        compare(value(m.ChargeFixedCostsInObjective), 5.0 * 80 / 4.0)
        # the objective scales all cost components back up
        compare(value(m.SystemCost), 400.0)

    def test_zone_and_system_totals(self):
        m = build_instance(
            {
                1: ("z1", 10, 100.0, 1.0, True, False),
                2: ("z2", 20, 200.0, 3.0, True, True),
            },
            zones=("z1", "z2", "z3"),
        )
        m.BuildChargeCap[1].fix(5)
        m.BuildChargeCap[2].fix(2)
        m.RetireChargeCap[2].fix(4)

        compare(list(m.ASYM_STORAGE_IN_ZONE["z1"]), [1])
        compare(list(m.ASYM_STORAGE_IN_ZONE["z2"]), [2])
        compare(list(m.ASYM_STORAGE_IN_ZONE["z3"]), [])

        # z1: 100 * 5 + 1 * 15; z2: 200 * 2 + 3 * 18
        compare(value(m.ZoneChargeFixedCosts["z1"]), 515.0)
        compare(value(m.ZoneChargeFixedCosts["z2"]), 454.0)
        compare(value(m.ZoneChargeFixedCosts["z3"]), 0)
        compare(value(m.ZoneChargeCapitalCosts["z2"]), 400.0)
        compare(value(m.ZoneChargeFixedOMCosts["z2"]), 54.0)
        compare(value(m.TotalChargeFixedCosts), 969.0)
        compare(
            value(m.TotalChargeFixedCosts),
            value(m.TotalChargeCapitalCosts) + value(m.TotalChargeFixedOMCosts),
        )
        compare(
            value(m.TotalChargeFixedCosts),
            sum(value(m.ChargeFixedCosts[y]) for y in m.STORAGE_ASYMMETRIC),
        )

    def test_system_totals_are_scalar_expressions(self):
        for multi_stage in (False, True):
            m = build_instance(
                {1: ("z1", 10, 100.0, 1.0, True, False)},
                zones=("z1", "z2"),
                multi_stage=multi_stage,
            )
            for name in (
                "TotalChargeCapitalCosts",
                "TotalChargeFixedOMCosts",
                "TotalChargeFixedCosts",
            ):
                self.assertFalse(getattr(m, name).is_indexed(), name)
            compare(list(m.ZoneChargeFixedCosts), ["z1", "z2"])
            m.BuildChargeCap[1].fix(2)
            if multi_stage:
                m.StageExistingChargeCap[1].fix(10)
            compare(value(m.TotalChargeCapitalCosts), 200.0)
            compare(value(m.TotalChargeFixedOMCosts), 12.0)
            compare(value(m.SystemCost), 212.0)

    def test_multi_stage_retirement_limited_by_stage_existing_capacity(self):
        m = build_instance(
            {1: ("z1", 30, 1.0, 1.0, False, True)}, multi_stage=True
        )
        compare(list(m.Max_Retire_Charge_Cap), [1])
        m.StageExistingChargeCap[1].fix(30)
        m.RetireChargeCap[1].fix(30)
        self.assertTrue(is_satisfied(m.Max_Retire_Charge_Cap[1]))
        compare(value(m.TotalChargeCap[1]), 0)
        m.RetireChargeCap[1].fix(31)
        self.assertFalse(is_satisfied(m.Max_Retire_Charge_Cap[1]))
        # the limit follows the stage decision, not the input value
        m.StageExistingChargeCap[1].fix(20)
        m.RetireChargeCap[1].fix(25)
        self.assertFalse(is_satisfied(m.Max_Retire_Charge_Cap[1]))
        m.RetireChargeCap[1].fix(20)
        self.assertTrue(is_satisfied(m.Max_Retire_Charge_Cap[1]))

    def test_capacity_modes(self):
        m = build_instance(
            {
                1: ("z1", 10, 1.0, 1.0, True, True),
                2: ("z1", 10, 1.0, 1.0, True, False),
                3: ("z1", 10, 1.0, 1.0, False, True),
                4: ("z1", 10, 1.0, 1.0, False, False),
            }
        )
        compare(
            [m.charge_cap_mode[y] for y in m.STORAGE_ASYMMETRIC],
            [
                ChargeCapacityMode.BOTH,
                ChargeCapacityMode.NEW_ONLY,
                ChargeCapacityMode.RETIRE_ONLY,
                ChargeCapacityMode.FIXED,
            ],
        )
        for y in m.BuildChargeCap:
            m.BuildChargeCap[y].fix(3)
        for y in m.RetireChargeCap:
            m.RetireChargeCap[y].fix(2)
        compare(
            [value(m.TotalChargeCap[y]) for y in m.STORAGE_ASYMMETRIC], [11, 13, 8, 10]
        )
        compare(
            [value(m.ChargeCapitalCosts[y]) for y in m.STORAGE_ASYMMETRIC],
            [3.0, 3.0, 0.0, 0.0],
        )

    def test_explicit_eligibility_sets_override_flags(self):
        m = build_instance(
            {
                1: ("z1", 10, 1.0, 1.0, True, False),
                2: ("z1", 10, 1.0, 1.0, False, False),
            },
            extra_data={"NEW_CAP_CHARGE": {None: [2]}, "RET_CAP_CHARGE": {None: [1]}},
        )
        compare(list(m.BuildChargeCap), [2])
        compare(list(m.RetireChargeCap), [1])
        compare(m.charge_cap_mode[1], ChargeCapacityMode.RETIRE_ONLY)
        compare(m.charge_cap_mode[2], ChargeCapacityMode.NEW_ONLY)

    def test_no_asymmetric_storage(self):
        m = build_instance({})
        compare(len(m.TotalChargeCap), 0)
        compare(value(m.TotalChargeFixedCosts), 0)
        compare(value(m.SystemCost), 0)

    def test_min_limit(self):
        m = build_instance(
            {1: ("z1", 100, 1.0, 1.0, True, False)}, min_caps={1: 150.0}
        )
        m.BuildChargeCap[1].fix(40)
        self.assertFalse(is_satisfied(m.Min_Charge_Cap[1]))
        m.BuildChargeCap[1].fix(50)
        self.assertTrue(is_satisfied(m.Min_Charge_Cap[1]))

    def test_multi_stage_contribution_is_scaled_single_stage_contribution(self):
        resources = {
            1: ("z1", 10, 100.0, 1.0, True, True),
            2: ("z2", 20, 200.0, 3.0, False, True),
        }
        extra_data = {"discount_rate": {None: 0.05}, "stage_length_years": {None: 3}}
        single = build_instance(resources, zones=("z1", "z2"), extra_data=extra_data)
        multi = build_instance(
            resources, zones=("z1", "z2"), multi_stage=True, extra_data=extra_data
        )
        for m in (single, multi):
            m.BuildChargeCap[1].fix(5)
            m.RetireChargeCap[1].fix(1)
            m.RetireChargeCap[2].fix(7)
        for y in multi.StageExistingChargeCap:
            multi.StageExistingChargeCap[y].fix(multi.stor_existing_charge_cap_mw[y])

        opex_multiplier = value(multi.opex_multiplier)
        self.assertAlmostEqual(opex_multiplier, 1 + 1 / 1.05 + 1 / 1.05**2)
        self.assertAlmostEqual(
            value(multi.ChargeFixedCostsInObjective),
            value(single.ChargeFixedCostsInObjective) / opex_multiplier,
        )
        self.assertAlmostEqual(value(multi.SystemCost), value(single.SystemCost))

    def test_limit_conflicts(self):
        m = build_instance(
            {
                1: ("z1", 50, 1.0, 1.0, False, False),
                2: ("z1", 50, 1.0, 1.0, False, True),
                3: ("z1", 5, 1.0, 1.0, False, False),
                4: ("z1", 5, 1.0, 1.0, True, False),
            },
            max_caps={1: 40.0, 2: 40.0},
            min_caps={3: 10.0, 4: 10.0},
        )
        compare(
            charge_cap_limit_conflicts(m),
            [("Max_Charge_Cap", 1, 50, 40.0), ("Min_Charge_Cap", 3, 5, 10.0)],
        )

    def test_eligible_resource_missing_from_table(self):
        # Fiddle with the pyomo logger to suppress its error message
        logger = logging.getLogger("pyomo.core")
        orig_log_level = logger.level
        logger.setLevel(logging.FATAL)
        try:
            with self.assertRaises(ValueError):
                build_instance(
                    {1: ("z1", 10, 1.0, 1.0, False, False)},
                    extra_data={"RET_CAP_CHARGE": {None: [1, 7]}},
                )
        finally:
            logger.setLevel(orig_log_level)

    def test_existing_capacity_source(self):
        self.assertIsInstance(existing_capacity_source(False), StaticExistingChargeCap)
        self.assertIsInstance(
            existing_capacity_source(True), StageExistingChargeCapSource
        )

    def test_load_example_inputs(self):
        mod = ChargeCapAbstractModel(module_list=MODULES, args=[])
        m = mod.load_inputs(inputs_dir=EXAMPLE_INPUTS)
        compare(list(m.LOAD_ZONES), ["North", "South"])
        compare(list(m.STORAGE_ASYMMETRIC), [1, 2, 3, 4])
        compare(list(m.NEW_CAP_CHARGE), [1, 3])
        compare(list(m.RET_CAP_CHARGE), [2, 3])
        # "." and non-positive values leave a resource unconstrained
        compare(list(m.MAX_CHARGE_CAP_LIMITED), [2])
        compare(list(m.MIN_CHARGE_CAP_LIMITED), [1])
        compare(value(m.stor_max_charge_cap_mw[2]), 40)
        compare(value(m.stor_min_charge_cap_mw[1]), 150)
        compare(list(m.ASYM_STORAGE_IN_ZONE["South"]), [3, 4])
        compare(m.charge_cap_mode[4], ChargeCapacityMode.FIXED)
        compare(value(m.discount_rate), 0.05)

    def test_eligibility_list_files(self):
        temp_dir = tempfile.mkdtemp(prefix="chargecap_test_")
        try:
            inputs_dir = os.path.join(temp_dir, "inputs")
            shutil.copytree(EXAMPLE_INPUTS, inputs_dir)
            # a heading with no rows means no resource may retire
            with open(os.path.join(inputs_dir, "ret_cap_charge.csv"), "w") as f:
                f.write("RET_CAP_CHARGE\n")
            with open(os.path.join(inputs_dir, "new_cap_charge.csv"), "w") as f:
                f.write("NEW_CAP_CHARGE\n4\n")
            mod = ChargeCapAbstractModel(module_list=MODULES, args=[])
            m = mod.load_inputs(inputs_dir=inputs_dir)
            compare(list(m.RET_CAP_CHARGE), [])
            compare(len(m.RetireChargeCap), 0)
            compare(list(m.NEW_CAP_CHARGE), [4])
            compare(m.charge_cap_mode[3], ChargeCapacityMode.FIXED)
            compare(m.charge_cap_mode[4], ChargeCapacityMode.NEW_ONLY)
        finally:
            shutil.rmtree(temp_dir)


if __name__ == "__main__":
    unittest.main()
