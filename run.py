#!/usr/bin/env python3
"""
Synaptic - Stack Operations Launcher

Start, stop, build and deploy the Synaptic services from a single entry point.

Usage:
    python run.py dev start          # Native dev processes + PostgreSQL container
    python run.py dev status         # Port-based status of the dev stack
    python run.py docker start       # Full stack via Docker Compose
    python run.py docker health      # Probe every containerized service
    python run.py deploy --cleanup   # Build images, deploy, init schema, prune old images
    python run.py build-all 1.4.0    # Run each service's build.sh with a shared version
    python run.py verify             # Check Docker, build scripts and the compose file
"""

import sys

from synaptic.cli import main

if __name__ == '__main__':
    sys.exit(main())
