# SPDX-License-Identifier: MIT
"""Generators for link lines and ctypes bindings."""
