# Copyright (c) 2015-2024 The Switch Authors. All rights reserved.
# Licensed under the Apache License, Version 2.0, which is in the LICENSE file.

"""

This package defines the geographic structure of the model.

The core module in the package is load_zones.

"""
core_modules = ["chargecap_model.balancing.load_zones"]
