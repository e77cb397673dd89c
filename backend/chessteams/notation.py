import logging
import math
import re

from .schemas import BoardResult, GameResult, MatchResult, TeamScore

logger = logging.getLogger(__name__)

HALF = "½"
BOARD_SCORES = (0.0, 0.5, 1.0)

_TEAM_SCORE_RE = re.compile(r"^([\d½.]+)\s*(F?)\s*[-–]\s*([\d½.]+)\s*(F?)$", re.IGNORECASE)
_BOARD_RESULT_RE = re.compile(r"^([\d½.]+)\s*:\s*([\d½.]+)$")
_FORFEIT_RE = re.compile(r"^([+-])\s*:\s*([+-])$")

# (white mark, black mark) -> (white score, black score)
_FORFEIT_SENTINELS: dict[tuple[str, str], tuple[float, float]] = {
    ("+", "-"): (1.0, 0.0),
    ("-", "+"): (0.0, 1.0),
    ("-", "-"): (0.0, 0.0),
}


def _as_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def format_score(value: float) -> str:
    whole = math.floor(value)
    fraction = value - whole
    if fraction == 0:
        return str(int(whole))
    if fraction == 0.5:
        return HALF if whole == 0 else f"{int(whole)}{HALF}"
    return f"{value:g}"


def parse_score_value(text: object) -> float | None:
    cleaned = _as_text(text)
    if not cleaned:
        return None

    if cleaned == HALF:
        return 0.5

    # "4½" is four and a half points in team score cells.
    if cleaned.endswith(HALF):
        whole = cleaned[:-1]
        return int(whole) + 0.5 if whole.isdecimal() else None

    try:
        parsed = float(cleaned)
    except ValueError:
        return None

    if not math.isfinite(parsed) or parsed < 0:
        return None
    return parsed


def parse_team_score(text: object) -> TeamScore | None:
    cleaned = _as_text(text)
    if not cleaned:
        return None

    match = _TEAM_SCORE_RE.match(cleaned)
    if not match:
        logger.warning("Could not parse team score: %r", cleaned)
        return None

    white = parse_score_value(match.group(1))
    black = parse_score_value(match.group(3))
    if white is None or black is None:
        logger.warning("Invalid score values in team score: %r", cleaned)
        return None

    return TeamScore(
        white=white,
        black=black,
        is_forfeit=bool(match.group(2)) or bool(match.group(4)),
    )


def _classify(white: float, black: float) -> tuple[GameResult, GameResult]:
    if white == 0 and black == 0:
        return "forfeit", "forfeit"
    if white == black:
        return "draw", "draw"
    if white > black:
        return "win", "loss"
    return "loss", "win"


def _normalized_result(white: float, black: float) -> str:
    return f"{format_score(white)}:{format_score(black)}"


def parse_board_result(text: object) -> BoardResult | None:
    cleaned = _as_text(text)
    if not cleaned:
        logger.warning("Empty board result")
        return None

    forfeit = _FORFEIT_RE.match(cleaned)
    if forfeit:
        scores = _FORFEIT_SENTINELS.get((forfeit.group(1), forfeit.group(2)))
        if scores is None:
            logger.warning("Unknown forfeit notation in board result: %r", cleaned)
            return None
        white, black = scores
        return BoardResult(
            result=_normalized_result(white, black),
            white_score=white,
            black_score=black,
            white_result="forfeit",
            black_result="forfeit",
        )

    match = _BOARD_RESULT_RE.match(cleaned)
    if not match:
        logger.warning("Could not parse board result: %r", cleaned)
        return None

    white = parse_score_value(match.group(1))
    black = parse_score_value(match.group(2))
    if white not in BOARD_SCORES or black not in BOARD_SCORES:
        logger.warning("Invalid score values in board result: %r", cleaned)
        return None

    white_result, black_result = _classify(white, black)
    return BoardResult(
        result=_normalized_result(white, black),
        white_score=white,
        black_score=black,
        white_result=white_result,
        black_result=black_result,
    )


def calculate_match_result(white_score: float, black_score: float) -> MatchResult:
    if white_score > black_score:
        return "win"
    if white_score < black_score:
        return "loss"
    return "draw"
