#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
import sys
from pathlib import Path

# Allow running the script from a source checkout without installing it first
sys.path.insert(0, str(Path(__file__).resolve().parent))

from pykerneltest.__main__ import main  # noqa: E402

main()
