#!/usr/bin/env python
"""Replay photo events through the discovery engine.

Usage:
    python -m scripts.replay_events --events data/events.json --output links.json

The events file holds a JSON list. Each item carries a "type" of
"analyzed" (with the PhotoAnalyzed fields) or "removed" (with photo_id).
Events are applied in order; the resulting link table is printed.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from resonance.config import DiscoverySettings, Settings, get_settings
from resonance.discovery.engine import DiscoveryEngine
from resonance.discovery.models import PhotoAnalyzed, PhotoRemoved
from resonance.exceptions import ErrorCode, ResonanceError, ValidationError
from resonance.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def load_events(path: Path) -> list[PhotoAnalyzed | PhotoRemoved]:
    """Load and validate an events file.

    Args:
        path: Path to the JSON events file.

    Returns:
        Parsed events in file order.

    Raises:
        ValidationError: If the file or an event is malformed.
    """
    try:
        raw = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(
            f"Cannot read events file: {e}",
            details={"path": str(path)},
        ) from e

    if not isinstance(raw, list):
        raise ValidationError("Events file must contain a JSON list", details={"path": str(path)})

    events: list[PhotoAnalyzed | PhotoRemoved] = []
    for position, item in enumerate(raw):
        events.append(_parse_event(position, item))
    return events


def _parse_event(position: int, item: Any) -> PhotoAnalyzed | PhotoRemoved:
    if not isinstance(item, dict):
        raise ValidationError(f"Event {position} is not an object", details={"position": position})

    fields = dict(item)
    kind = fields.pop("type", None)
    try:
        if kind == "analyzed":
            return PhotoAnalyzed.model_validate(fields)
        if kind == "removed":
            return PhotoRemoved.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Event {position} is invalid: {e.error_count()} error(s)",
            details={"position": position, "errors": e.errors(include_url=False)},
        ) from e

    raise ValidationError(
        f"Event {position} has unknown type: {kind!r}",
        details={"position": position, "type": kind},
    )


async def replay(
    events: list[PhotoAnalyzed | PhotoRemoved],
    settings: Settings,
    settle_each: bool = False,
) -> DiscoveryEngine:
    """Apply events to a fresh engine and wait for discovery to settle.

    Args:
        events: Events in order.
        settings: Engine settings.
        settle_each: Wait for the engine to go idle after every event.

    Returns:
        The stopped engine, holding the final link state.
    """
    engine = DiscoveryEngine(settings)
    async with engine:
        for event in events:
            if isinstance(event, PhotoAnalyzed):
                engine.on_photo_analyzed(event)
            else:
                engine.on_photo_removed(event)
            if settle_each:
                await engine.wait_idle()
        await engine.wait_idle()
    return engine


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Replay photo events through the discovery engine",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--events",
        type=Path,
        required=True,
        help="Path to events JSON file",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to save resulting links JSON",
    )
    parser.add_argument(
        "--publish-threshold",
        type=float,
        default=None,
        help="Override the publish threshold (0-1)",
    )
    parser.add_argument(
        "--settle-each",
        action="store_true",
        help="Wait for discovery to finish after every event",
    )

    args = parser.parse_args()
    setup_logging(level="INFO")

    base = get_settings()
    discovery_overrides: dict[str, Any] = {"debounce_seconds": 0.0}
    if args.publish_threshold is not None:
        discovery_overrides["publish_threshold"] = args.publish_threshold
    settings = base.model_copy(
        update={
            "discovery": DiscoverySettings(
                **{**base.discovery.model_dump(), **discovery_overrides}
            )
        }
    )

    try:
        events = load_events(args.events)
        logger.info(f"Replaying {len(events)} events from {args.events}")
        engine = asyncio.run(replay(events, settings, settle_each=args.settle_each))
    except ResonanceError as e:
        logger.error(f"Replay failed: {e.message}", extra={"error_code": e.code.value})
        sys.exit(2 if e.code == ErrorCode.VALIDATION_ERROR else 1)

    links = engine.list_links()
    stats = engine.stats()

    print("\n" + "=" * 72)
    print("RESONANCE LINKS")
    print("=" * 72)
    print(f"MyWork photos: {stats.my_work_photos}")
    print(f"Inspiration photos: {stats.inspiration_photos}")
    print(f"Links: {stats.links}")
    print("-" * 72)
    for link in links:
        print(
            f"{link.overall_score:6.1%}  {link.photo_a_id} <-> {link.photo_b_id}  "
            f"{link.description or ''}"
        )
    print("=" * 72)

    if args.output:
        output_data = {
            "stats": stats.model_dump(mode="json"),
            "links": [link.model_dump(mode="json") for link in links],
        }
        args.output.write_text(json.dumps(output_data, indent=2))
        logger.info(f"Links saved to {args.output}")


if __name__ == "__main__":
    main()
