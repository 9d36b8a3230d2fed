# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""

This package adds charge capacity accounting for asymmetric storage.

The core modules in the package are asymmetric, which reads the resource
table, and investment_charge, which adds the charge capacity decisions,
costs and limits.

"""
core_modules = [
    "chargecap_model.storage.asymmetric",
    "chargecap_model.storage.investment_charge",
]
