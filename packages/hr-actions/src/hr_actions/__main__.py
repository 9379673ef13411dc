import sys

from hr_actions.cli import main

sys.exit(main())
