# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

import os
import shutil
import tempfile
import unittest

import pandas as pd
from testfixtures import compare

from chargecap_model.utilities import ChargeCapAbstractModel

MODULES = [
    "chargecap_model.financials",
    "chargecap_model.balancing.load_zones",
    "chargecap_model.storage.asymmetric",
    "chargecap_model.storage.investment_charge",
    "chargecap_model.reporting",
    "chargecap_model.solve",
]


class ReportingTest(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="chargecap_test_")
        mod = ChargeCapAbstractModel(
            module_list=MODULES, args=["--outputs-dir", self.temp_dir]
        )
        data = {
            "LOAD_ZONES": {None: ["North", "South"]},
            "zone_dbid": {"North": 10, "South": 20},
            "STORAGE_ASYMMETRIC": {None: [1, 2]},
            "stor_load_zone": {1: "North", 2: "South"},
            "stor_existing_charge_cap_mw": {1: 100, 2: 50},
            "stor_charge_inv_cost_per_mwyr": {1: 10.0, 2: 20.0},
            "stor_charge_fixed_om_per_mwyr": {1: 2.0, 2: 1.0},
            "stor_new_build": {1: True, 2: False},
            "stor_can_retire": {1: False, 2: True},
        }
        self.m = mod.create_instance(data={None: data})
        self.m.BuildChargeCap[1].fix(30)
        self.m.RetireChargeCap[2].fix(20)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def read_csv(self, filename):
        return pd.read_csv(os.path.join(self.temp_dir, filename))

    def test_charge_capacity_tables(self):
        self.m.post_solve()

        df = self.read_csv("charge_capacity.csv")
        compare(list(df["STORAGE_ASYMMETRIC"]), [1, 2])
        compare(list(df["load_zone"]), ["North", "South"])
        compare(list(df["capacity_mode"]), ["new_only", "retire_only"])
        compare(list(df["BuildChargeCap"]), [30.0, 0.0])
        compare(list(df["RetireChargeCap"]), [0.0, 20.0])
        compare(list(df["TotalChargeCap"]), [130.0, 30.0])
        compare(list(df["ChargeFixedCosts"]), [560.0, 30.0])

        df = self.read_csv("charge_costs_by_zone.csv")
        compare(list(df["LOAD_ZONE"]), ["North", "South"])
        compare(list(df["zone_dbid"]), [10, 20])
        compare(list(df["ZoneChargeCapitalCosts"]), [300.0, 0.0])
        compare(list(df["ZoneChargeFixedOMCosts"]), [260.0, 30.0])

    def test_generic_results_and_costs(self):
        self.m.post_solve()

        with open(os.path.join(self.temp_dir, "total_cost.txt")) as f:
            compare(float(f.read()), 590.0)

        df = self.read_csv("cost_components.csv")
        compare(list(df["component"]), ["ChargeFixedCostsInObjective"])
        compare([float(v) for v in df["system_cost"]], [590.0])
        compare([float(v) for v in df["annual_cost"]], [590.0])

        df = self.read_csv("BuildChargeCap.csv")
        compare(list(df.columns), ["NEW_CAP_CHARGE_1", "BuildChargeCap"])
        compare(list(df["BuildChargeCap"]), [30])
        df = self.read_csv("RetireChargeCap.csv")
        compare(list(df["RET_CAP_CHARGE_1"]), [2])


if __name__ == "__main__":
    unittest.main()
