from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Protocol, Union

from pydantic import BaseModel

from .models import AggregateResult

logger = logging.getLogger(__name__)


EVENTS_FILE = "events.json"
STATS_FILE = "scrape-stats.json"
ERRORS_FILE = "scrape-errors.json"
WARNINGS_FILE = "scrape-warnings.json"


class EventSink(Protocol):
    def write(self, result: AggregateResult) -> None:
        ...


def _dump(payload: Union[BaseModel, List[BaseModel]]) -> Any:
    if isinstance(payload, list):
        return [p.model_dump(mode="json") for p in payload]
    return payload.model_dump(mode="json")


class JsonFileSink:
    """
    Writes a run to ``output_dir``:

      events.json           merged, sorted events
      scrape-stats.json     aggregate + per-venue stats
      scrape-errors.json    invalid events (only when there are any)
      scrape-warnings.json  events with warnings (only when there are any)

    Write errors are not caught.
    """

    def __init__(self, output_dir: Union[str, Path]) -> None:
        self.output_dir = Path(output_dir)

    def _write_json(self, name: str, payload: Any) -> Path:
        path = self.output_dir / name
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.info("[sink] wrote path=%s", path)
        return path

    def write(self, result: AggregateResult) -> List[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written = [
            self._write_json(EVENTS_FILE, _dump(result.events)),
            self._write_json(STATS_FILE, _dump(result.stats)),
        ]
        if result.invalid:
            written.append(self._write_json(ERRORS_FILE, _dump(result.invalid)))
        if result.warnings:
            written.append(self._write_json(WARNINGS_FILE, _dump(result.warnings)))
        return written
