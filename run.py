#!/usr/bin/env python3
"""Beacon Range - Entry Point

Usage:
    # Estimate distance for one or more RSSI samples
    python run.py --rssi -65 --tx-power -59

    # Use a device model's coefficients
    python run.py --manufacturer LGE --model "Nexus 5" --rssi -70

    # Validate configuration
    python run.py --validate
"""

import sys

from beacon_range.cli import main


if __name__ == "__main__":
    sys.exit(main())
