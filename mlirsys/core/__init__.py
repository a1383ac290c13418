# SPDX-License-Identifier: MIT
"""Core types shared by the mlirsys components."""
