"""Allow ``python -m archtrace``."""

import sys

from archtrace.cli import main

sys.exit(main())
