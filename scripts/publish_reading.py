#!/usr/bin/env python3
"""Publish a single temperature reading to the event bus.

Useful to exercise a running monitor service by hand:

    scripts/publish_reading.py 12 24.5 --name Garage
"""

import argparse
from datetime import UTC, datetime

from tempmon.lib.eventbus import EventPublisher, ReadingEvent, Topic
from tempmon.lib.reading import Reading


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("sensor_id", help="Sensor identity")
    parser.add_argument("value", help="Temperature in °F")
    parser.add_argument("--name", help="Sensor display name")
    args = parser.parse_args()

    reading = Reading.create(
        sensor_id=args.sensor_id,
        value=args.value,
        recording_time=datetime.now(UTC),
        name=args.name,
    )

    publisher = EventPublisher()
    publisher.connect()
    try:
        publisher.publish(Topic.READING, ReadingEvent.from_reading(reading))
    finally:
        publisher.close()
    print(f"Published {reading.value}°F for sensor {reading.sensor_id}")


if __name__ == "__main__":
    main()
