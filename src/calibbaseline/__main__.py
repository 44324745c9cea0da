import sys

from calibbaseline.cli.main import main

sys.exit(main())
