"""Allow ``python -m llmclient``."""

import sys

from .cli import main

sys.exit(main())
