import sys

from storemigrate.cli import main

sys.exit(main())
