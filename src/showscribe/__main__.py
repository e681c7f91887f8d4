"""Allow ``python -m showscribe``."""

import sys

from .cli import main

sys.exit(main())
