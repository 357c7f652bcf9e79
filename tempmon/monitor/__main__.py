"""Temperature monitor service entrypoint.

Subscribes to temperature readings on the event bus, tracks per-sensor
range excursions and sends notifications through the configured backends.

Usage: python -m tempmon.monitor
"""

from tempmon.monitor.service import main

if __name__ == "__main__":
    main()
