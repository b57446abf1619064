"""Allow `python -m ctgranger`."""

import sys

from ctgranger.cli import main

sys.exit(main())
