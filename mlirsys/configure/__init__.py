# SPDX-License-Identifier: MIT
"""Target platform detection and configuration."""
