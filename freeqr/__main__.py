import sys

from freeqr.cli import main

sys.exit(main())
