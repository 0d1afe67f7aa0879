import sys

from arraysafety.cli import main

sys.exit(main())
