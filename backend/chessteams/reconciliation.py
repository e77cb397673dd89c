import logging
from collections.abc import Iterable

from .notation import format_score
from .schemas import BoardScore, ScoreCheck, TeamPairingData

logger = logging.getLogger(__name__)

SCORE_TOLERANCE = 0.5
MIN_BOARDS = 3
MAX_BOARDS = 8


def validate_team_score(
    team_white_score: float,
    team_black_score: float,
    board_scores: Iterable[BoardScore],
) -> ScoreCheck:
    scores = list(board_scores)
    sum_white = sum(board.white for board in scores)
    sum_black = sum(board.black for board in scores)

    white_valid = abs(sum_white - team_white_score) <= SCORE_TOLERANCE
    black_valid = abs(sum_black - team_black_score) <= SCORE_TOLERANCE
    if white_valid and black_valid:
        return ScoreCheck(valid=True)

    return ScoreCheck(
        valid=False,
        message=(
            f"Score mismatch: team shows {format_score(team_white_score)}-{format_score(team_black_score)}, "
            f"boards sum to {format_score(sum_white)}-{format_score(sum_black)}"
        ),
    )


def check_pairing(pairing: TeamPairingData) -> list[str]:
    warnings: list[str] = []

    board_count = len(pairing.board_pairings)
    if board_count < MIN_BOARDS or board_count > MAX_BOARDS:
        warnings.append(f"Pairing {pairing.pairing_number}: unusual board count ({board_count} boards)")

    check = validate_team_score(
        pairing.team_white_score,
        pairing.team_black_score,
        (BoardScore(white=board.white_score, black=board.black_score) for board in pairing.board_pairings),
    )
    if not check.valid:
        warnings.append(f"Pairing {pairing.pairing_number}: {check.message}")

    for warning in warnings:
        logger.warning(warning)
    return warnings
