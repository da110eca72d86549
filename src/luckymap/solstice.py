"""Solstice dates per year: bundled table loader and skyfield-based regeneration."""

import json
import logging
import sys
from functools import lru_cache
from pathlib import Path

from pytz import timezone
from skyfield import almanac
from skyfield.api import Loader

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).parent.parent.parent
DEFAULT_TABLE_PATH = _ROOT / "resources" / "solstice-compact.json"

VN_TZ = timezone("Asia/Ho_Chi_Minh")

# Whole years covered by the DE421 ephemeris
EPHEMERIS_FIRST_YEAR = 1900
EPHEMERIS_LAST_YEAR = 2052

# skyfield almanac.seasons event codes
_SUMMER_SOLSTICE = 1
_WINTER_SOLSTICE = 3


@lru_cache(maxsize=4)
def load_solstice_table(path: Path | None = None) -> dict[int, dict]:
    """Read the solstice table, keyed by integer year.

    Each value is ``{"summer": {"month": m, "day": d}, "winter": {...}}`` in
    UTC+7 civil dates. A missing or unreadable file yields an empty table.
    """
    return _read_table(Path(path or DEFAULT_TABLE_PATH))


def _read_table(table_path: Path) -> dict[int, dict]:
    try:
        with table_path.open(encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Solstice table unavailable at %s: %s", table_path, e)
        return {}
    return {int(year): entry for year, entry in raw.items()}


def build_solstice_table(
    start_year: int = EPHEMERIS_FIRST_YEAR, end_year: int = EPHEMERIS_LAST_YEAR
) -> dict[int, dict]:
    """Compute June and December solstice dates with skyfield.

    Uses the DE421 ephemeris (whole years 1900-2052), downloaded into ``resources/``
    on first use. Event instants are converted to Asia/Ho_Chi_Minh before
    taking the calendar day.

    Args:
        start_year: First year to include.
        end_year: Last year to include.

    Returns:
        Table in the same shape load_solstice_table returns.
    """
    loader = Loader(str(_ROOT / "resources"))
    ts = loader.timescale()
    eph = loader("de421.bsp")

    t0 = ts.utc(start_year, 1, 1)
    t1 = ts.utc(end_year + 1, 1, 1)
    times, events = almanac.find_discrete(t0, t1, almanac.seasons(eph))

    table: dict[int, dict] = {}
    for t, event in zip(times, events):
        if event == _SUMMER_SOLSTICE:
            key = "summer"
        elif event == _WINTER_SOLSTICE:
            key = "winter"
        else:
            continue
        local = t.astimezone(VN_TZ)
        table.setdefault(local.year, {})[key] = {"month": local.month, "day": local.day}
    return table


def write_solstice_table(table: dict[int, dict], path: Path = DEFAULT_TABLE_PATH) -> None:
    """Write a table in the compact one-line-per-year layout."""
    lines = [
        f'  "{year}": {json.dumps(table[year], ensure_ascii=False)}'
        for year in sorted(table)
    ]
    path.write_text("{\n" + ",\n".join(lines) + "\n}\n", encoding="utf-8")


def regenerate_solstice_table(
    start_year: int = EPHEMERIS_FIRST_YEAR,
    end_year: int = EPHEMERIS_LAST_YEAR,
    path: Path = DEFAULT_TABLE_PATH,
    build=build_solstice_table,
) -> dict[int, dict]:
    """Recompute a range of years and merge them into the table at path.

    Years outside the range keep their existing entries, so the tail past
    the ephemeris is never dropped. Returns the merged table.
    """
    if start_year < EPHEMERIS_FIRST_YEAR or end_year > EPHEMERIS_LAST_YEAR:
        raise ValueError(
            f"years must lie within {EPHEMERIS_FIRST_YEAR}-{EPHEMERIS_LAST_YEAR}"
        )
    table = _read_table(Path(path))
    fresh = build(start_year, end_year)
    table.update({y: e for y, e in fresh.items() if start_year <= y <= end_year})
    write_solstice_table(table, Path(path))
    load_solstice_table.cache_clear()
    logger.info("Regenerated %d solstice years into %s", len(fresh), path)
    return table


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) >= 3:
        regenerate_solstice_table(int(sys.argv[1]), int(sys.argv[2]))
    else:
        regenerate_solstice_table()
