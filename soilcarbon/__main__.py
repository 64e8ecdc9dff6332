import sys

from soilcarbon.cli import main

sys.exit(main())
