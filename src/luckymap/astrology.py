"""Huyền Không flying-star layer: personal number, center number, and risk directions."""

from collections.abc import Callable
from datetime import datetime

from lunar_python import Solar

from luckymap.models import AstroReading, LunarMoment
from luckymap.solstice import load_solstice_table

# Earthly branches in cyclic order, as lunar_python spells them
DAY_BRANCHES: tuple[str, ...] = (
    "子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥",
)

# Vietnamese names, same order
DAY_BRANCHES_VI: tuple[str, ...] = (
    "Tý", "Sửu", "Dần", "Mão", "Thìn", "Tỵ", "Ngọ", "Mùi", "Thân", "Dậu", "Tuất", "Hợi",
)

# Branch index mod 3 → base offset of the center number
_GROUP_OFFSETS: tuple[int, ...] = (1, 4, 7)

_BRANCH_OFFSET: dict[str, int] = {
    name: _GROUP_OFFSETS[i % 3]
    for names in (DAY_BRANCHES, DAY_BRANCHES_VI)
    for i, name in enumerate(names)
}

# Position in the flying-star ring → compass direction. Index 9 has no direction.
INDEX_TO_DIRECTION: dict[int, str] = {
    1: "NW",
    2: "W",
    3: "NE",
    4: "S",
    5: "N",
    6: "SW",
    7: "E",
    8: "SE",
}

LunarConverter = Callable[[datetime], LunarMoment]


def lunar_moment(local_dt: datetime) -> LunarMoment:
    """Convert a UTC+7 civil datetime to its lunar day branch and hour-branch index."""
    lunar = Solar.fromYmdHms(
        local_dt.year,
        local_dt.month,
        local_dt.day,
        local_dt.hour,
        local_dt.minute,
        local_dt.second,
    ).getLunar()
    return LunarMoment(
        day_branch=lunar.getDayZhi(), hour_branch_index=lunar.getTimeZhiIndex()
    )


def compute_center_number(birth_year: int, gender: str) -> int:
    """Personal (Nine Qi) number 1..9 from birth year and gender.

    Periodic in birth_year with period 9. Any gender other than "male" uses
    the female formula.
    """
    if gender == "male":
        v = 10 - ((birth_year - 1864) % 9)
    else:
        v = 5 + ((birth_year - 1864) % 9)
    return v % 9 or 9


def classify_half_of_year(local_dt: datetime, solstice_table: dict[int, dict]) -> str:
    """Return "last" between the summer and winter solstices, else "first".

    Years absent from the table default to "first".
    """
    sol = solstice_table.get(local_dt.year)
    if not sol:
        return "first"

    summer = datetime(local_dt.year, sol["summer"]["month"], sol["summer"]["day"])
    winter = datetime(local_dt.year, sol["winter"]["month"], sol["winter"]["day"])
    moment = local_dt.replace(tzinfo=None)

    if moment < summer:
        return "first"
    if moment < winter:
        return "last"
    return "first"


def compute_center_from_day_hour(day_branch: str, hour_branch_index: int, half: str) -> int:
    """Center number 1..9 for a day branch and hour branch.

    Day branches 子卯午酉 start from 1, 丑辰未戌 from 4, the rest from 7; the
    hour branch index is added. The second half of the year reflects the
    result (10 - center).
    """
    offset = _BRANCH_OFFSET.get(day_branch, _GROUP_OFFSETS[2])
    center = (offset + hour_branch_index) % 9 or 9
    if half == "last":
        center = 10 - center
    return center


def compute_risk_directions(center: int, personal_number: int) -> tuple[str, ...]:
    """Compass codes where the 5 star and the personal star fall, and their opposites.

    Ring position 0 is the center palace and has no direction, so it and its
    "opposite" are dropped. Result is deduplicated, at most 4 entries.
    """
    ring = [((center + i - 1) % 9) + 1 for i in range(9)]

    indexes: list[int] = []
    for star in (5, personal_number):
        idx = ring.index(star) if star in ring else 0
        opposite = 9 - idx if idx else 0
        indexes += [idx, opposite]

    directions: list[str] = []
    for idx in indexes:
        direction = INDEX_TO_DIRECTION.get(idx)
        if direction and direction not in directions:
            directions.append(direction)
    return tuple(directions)


def read_astrology(
    birth_year: int,
    gender: str,
    local_dt: datetime,
    to_lunar: LunarConverter = lunar_moment,
    solstice_table: dict[int, dict] | None = None,
) -> AstroReading:
    """Derive the full reading for one request.

    Args:
        birth_year: Gregorian birth year.
        gender: "male" or "female".
        local_dt: Naive datetime in UTC+7 civil time.
        to_lunar: Lunar converter (defaults to lunar_python).
        solstice_table: Overrides the bundled table.

    Returns:
        AstroReading with center, personal number and risk directions.
    """
    table = load_solstice_table() if solstice_table is None else solstice_table
    lunar = to_lunar(local_dt)
    half = classify_half_of_year(local_dt, table)
    center = compute_center_from_day_hour(lunar.day_branch, lunar.hour_branch_index, half)
    nine_qi = compute_center_number(birth_year, gender)
    return AstroReading(
        lunar=lunar,
        half=half,
        center=center,
        nine_qi=nine_qi,
        risk_directions=compute_risk_directions(center, nine_qi),
    )
