"""Allow running the command line interface with python -m aiopulsenative."""

import sys

from aiopulsenative.cli import main

sys.exit(main())
