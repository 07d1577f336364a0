"""Allow `python -m pulsekit` to run the CLI."""

import sys

from pulsekit.cli import main

sys.exit(main())
