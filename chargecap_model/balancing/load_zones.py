# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
Defines load zone parameters for the charge capacity model.
"""
import os
from pyomo.environ import *

dependencies = "chargecap_model.financials"


def define_components(mod):
    """
    Augments a Pyomo abstract model object with sets and parameters that
    describe load zones. Unless otherwise stated, each set and parameter is
    mandatory.

    LOAD_ZONES is the set of load zones. Storage resources are assigned to
    exactly one zone, and costs are summarized by zone. Load zones are
    abbreviated as zone in parameter names and as z for indexes.

    zone_dbid[z] stores an external database id for each load zone. This
    is optional and defaults to the name of the load zone. It will be
    printed out when results are exported.

    """
    mod.LOAD_ZONES = Set(dimen=1)
    mod.zone_dbid = Param(mod.LOAD_ZONES, default=lambda m, z: z, within=Any)
    mod.min_data_check("LOAD_ZONES")


def load_inputs(mod, chargecap_data, inputs_dir):
    """
    Import load zone data. The following file is expected in the input
    directory. Its index column needs to be on the left, but the data
    columns can be in any order. Extra columns will be ignored during
    import, and optional columns can be dropped. If you don't want to
    specify data for any optional parameter, use a dot . for its value.
    Optional columns are noted with a *.

    load_zones.csv
        LOAD_ZONE, zone_dbid*

    """
    chargecap_data.load_aug(
        filename=os.path.join(inputs_dir, "load_zones.csv"),
        index=mod.LOAD_ZONES,
        param=(mod.zone_dbid,),
    )
