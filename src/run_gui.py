#!/usr/bin/env python3
"""Entry point for the Capture the Flag booth GUI.

Optional argument: a location slug or a scanned check-in URL (…/?loc=<slug>).
"""

import os
import sys

HERE = os.path.dirname(os.path.abspath(__file__))
if HERE not in sys.path:
    sys.path.insert(0, HERE)

from flagbooth.ui.main_window import run

if __name__ == "__main__":
    run(sys.argv[1] if len(sys.argv) > 1 else None)
