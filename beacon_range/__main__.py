"""Allow running as: python -m beacon_range [--rssi ...]"""
import sys

from .cli import main

sys.exit(main())
