"""Allow ``python -m mkspreview part.gcode``."""

import sys

from .cli import main

sys.exit(main())
