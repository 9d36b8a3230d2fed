# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""
This package defines a modular Pyomo model of charge capacity for storage
resources whose charging and discharging power capacities are sized
independently ("asymmetric" storage).

core_modules is the list of modules needed for a working model. Models are
composed by listing modules in a modules.txt file; optional modules (e.g.,
reporting) may be added the same way.
"""
from .version import __version__

core_modules = [
    "chargecap_model.financials",
    "chargecap_model.balancing",
    "chargecap_model.storage",
]
