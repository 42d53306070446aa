import sys

from nullinfer.cli import main

sys.exit(main())
