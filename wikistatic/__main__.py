import sys

from wikistatic.cli import main

sys.exit(main())
