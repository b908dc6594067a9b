import sys

from synaptic.cli import main

sys.exit(main())
