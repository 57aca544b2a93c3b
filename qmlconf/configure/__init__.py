# SPDX-License-Identifier: MIT
"""Configure phase: probing, resolution and the configuration plan."""
