# SPDX-License-Identifier: MIT
"""Core data structures for qmlconf."""
