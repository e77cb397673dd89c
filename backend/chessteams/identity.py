import logging
import re
from datetime import date, datetime, timedelta
from pathlib import PurePath

from .schemas import PlayerName

logger = logging.getLogger(__name__)

CHESS_TITLES: tuple[str, ...] = ("GM", "IM", "FM", "CM", "WGM", "WIM", "WFM", "WCM", "NM")
MAX_BOARD_NUMBER = 8
ROUND_NUMBER_RANGE = (1, 30)

# Spreadsheet serial dates count days from 1899-12-30 (this absorbs the 1900 leap-year bug).
EXCEL_EPOCH = date(1899, 12, 30)

_TITLE_RE = re.compile(
    r"^(" + "|".join(sorted(CHESS_TITLES, key=len, reverse=True)) + r")\s+(.+)$",
    re.IGNORECASE,
)
_ROUND_KEYWORD_RE = re.compile(r"round[\W_]*(\d+)", re.IGNORECASE)
_ROUND_PREFIX_RE = re.compile(r"(?<![a-z0-9])r(\d+)", re.IGNORECASE)
_BARE_INTEGER_RE = re.compile(r"(?<!\d)(\d+)(?!\d)")
_PAIRING_NUMBER_RE = re.compile(r"^\d+\.\d+$")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")

_DATE_RANGE_RE = re.compile(
    r"(\d{4}[/-]\d{1,2}[/-]\d{1,2})\s+(?:to|-|–)\s+\d{4}[/-]\d{1,2}[/-]\d{1,2}",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})")
_DMY_DATE_RE = re.compile(r"(\d{1,2})[./](\d{1,2})[./](\d{4})")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------


def clean_cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return " ".join(str(value).split())


def parse_int_or_null(value: object) -> int | None:
    cleaned = clean_cell(value)
    if not cleaned or cleaned in ("-", "0"):
        return None

    match = _LEADING_INT_RE.match(cleaned)
    if not match:
        return None
    return int(match.group(0)) or None


def _excel_serial_to_date(serial: float) -> date | None:
    if not 0 < serial < 100000:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def _build_date(year: str, month: str, day: str, raw: str) -> date | None:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        logger.warning("Invalid calendar date: %r", raw)
        return None


def parse_date(value: object) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _excel_serial_to_date(float(value))

    raw = clean_cell(value)
    if not raw:
        return None

    range_match = _DATE_RANGE_RE.search(raw)
    if range_match:
        logger.debug("Date range %r, using start date", raw)
        return parse_date(range_match.group(1))

    try:
        return _excel_serial_to_date(float(raw))
    except ValueError:
        pass

    iso_match = _ISO_DATE_RE.search(raw)
    if iso_match:
        return _build_date(iso_match.group(1), iso_match.group(2), iso_match.group(3), raw)

    dmy_match = _DMY_DATE_RE.search(raw)
    if dmy_match:
        return _build_date(dmy_match.group(3), dmy_match.group(2), dmy_match.group(1), raw)

    logger.warning("Could not parse date: %r", raw)
    return None


# ---------------------------------------------------------------------------
# Identity extraction
# ---------------------------------------------------------------------------


def detect_round_number(filename: str | None) -> int | None:
    if not filename:
        return None

    name = PurePath(filename).name

    for pattern in (_ROUND_KEYWORD_RE, _ROUND_PREFIX_RE):
        match = pattern.search(name)
        if match and int(match.group(1)) >= 1:
            return int(match.group(1))

    low, high = ROUND_NUMBER_RANGE
    for match in _BARE_INTEGER_RE.finditer(name):
        number = int(match.group(1))
        if low <= number <= high:
            return number

    return None


def extract_player_title(name: object) -> PlayerName:
    cleaned = clean_cell(name)
    match = _TITLE_RE.match(cleaned)
    if not match:
        return PlayerName(name=cleaned)

    return PlayerName(name=match.group(2).strip(), title=match.group(1).upper())


def is_board_number(text: object) -> bool:
    cleaned = clean_cell(text)
    if not cleaned.isdecimal():
        return False

    number = int(cleaned)
    return 1 <= number <= MAX_BOARD_NUMBER and cleaned == str(number)


def is_team_pairing_number(text: object) -> bool:
    return bool(_PAIRING_NUMBER_RE.match(clean_cell(text)))


def is_chess_title(text: object) -> bool:
    return clean_cell(text).upper() in CHESS_TITLES
