"""Read recorded location samples from CSV or JSON-lines files."""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..domain.models import RawSample, parse_timestamp

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("latitude", "longitude")


@dataclass(frozen=True)
class SampleFileSummary:
    """Quick summary of sample file parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int


def _parse_time(value: Any) -> datetime | None:
    """Epoch milliseconds or ISO-8601; blank means "now"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    text = str(value).strip()
    try:
        return datetime.fromtimestamp(float(text) / 1000.0, tz=UTC)
    except ValueError:
        return parse_timestamp(text)


def _parse_speed(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return float(value)


def sample_from_row(row: Mapping[str, Any]) -> RawSample:
    """
    Build a sample from one row.

    Raises:
        ValueError: a field is not numeric / not a timestamp
    """
    try:
        return RawSample.at(
            float(row["latitude"]),
            float(row["longitude"]),
            speed_mps=_parse_speed(row.get("speed")),
            captured_at=_parse_time(row.get("timestamp")),
        )
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def _iter_rows(path: Path) -> Iterator[Mapping[str, Any] | None]:
    with path.open("r", encoding="utf-8", newline="") as f:
        if path.suffix.lower() in {".jsonl", ".ndjson", ".json"}:
            for line in f:
                if not line.strip():
                    continue
                try:
                    item = json.loads(line)
                except json.JSONDecodeError:
                    yield None
                    continue
                yield item if isinstance(item, dict) else None
            return

        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        missing = [name for name in REQUIRED_FIELDS if name not in fieldnames]
        if missing:
            raise ValueError(f"sample file is missing columns {missing}; found {list(fieldnames)}")
        yield from reader


def load_samples(path: str | Path) -> tuple[list[RawSample], SampleFileSummary]:
    """
    Load all samples from ``path`` in file order.

    CSV files need ``latitude`` and ``longitude`` columns and may carry
    ``speed`` (m/s) and ``timestamp`` (epoch ms or ISO-8601). ``.jsonl``
    files hold one object per line with the same keys.

    Returns:
        (samples, summary)
    """
    p = Path(path)
    rows_total = 0
    parsed: list[RawSample] = []

    for row in _iter_rows(p):
        rows_total += 1
        if row is None:
            continue
        try:
            parsed.append(sample_from_row(row))
        except (KeyError, ValueError, TypeError):
            continue

    summary = SampleFileSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
    )
    if summary.rows_skipped > 0:
        logger.warning("Skipped %d unparseable rows in %s", summary.rows_skipped, p)
    return parsed, summary


def iter_samples(path: str | Path) -> Iterator[RawSample]:
    """Yield samples from ``path`` lazily, skipping unparseable rows."""
    for row in _iter_rows(Path(path)):
        if row is None:
            continue
        try:
            yield sample_from_row(row)
        except (KeyError, ValueError, TypeError):
            continue
