# SPDX-License-Identifier: MIT
"""Allow running mlirsys as `python -m mlirsys`."""

import sys

from mlirsys.cli import main

sys.exit(main())
