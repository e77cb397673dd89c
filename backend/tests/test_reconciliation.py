import logging

from chessteams.reconciliation import check_pairing, validate_team_score
from chessteams.schemas import BoardPairingData, BoardScore, TeamPairingData


def board(number: int, white: float, black: float) -> BoardPairingData:
    if white == black:
        outcomes = ("draw", "draw")
    elif white > black:
        outcomes = ("win", "loss")
    else:
        outcomes = ("loss", "win")
    return BoardPairingData(
        board_number=number,
        white_player=f"White {number}",
        black_player=f"Black {number}",
        result=f"{white}:{black}",
        white_score=white,
        black_score=black,
        white_result=outcomes[0],
        black_result=outcomes[1],
    )


def pairing(white_score: float, black_score: float, boards: list[BoardPairingData]) -> TeamPairingData:
    return TeamPairingData(
        pairing_number="1.1",
        team_white="Knights",
        team_black="Rooks",
        team_white_score=white_score,
        team_black_score=black_score,
        board_pairings=boards,
    )


def test_matching_scores_are_valid():
    check = validate_team_score(2.5, 1.5, [BoardScore(white=1, black=0), BoardScore(white=0.5, black=0.5), BoardScore(white=1, black=0), BoardScore(white=0, black=1)])

    assert check.valid is True
    assert check.message is None


def test_half_point_difference_is_tolerated():
    boards = [BoardScore(white=0.5, black=0.5)] + [BoardScore(white=1, black=0)] * 3 + [BoardScore(white=0, black=1)] * 4

    check = validate_team_score(4, 4, boards)

    assert check.valid is True


def test_full_point_difference_is_a_mismatch():
    boards = [BoardScore(white=1, black=0)] * 3 + [BoardScore(white=0, black=1)] * 5

    check = validate_team_score(4, 4, boards)

    assert check.valid is False
    assert check.message == "Score mismatch: team shows 4-4, boards sum to 3-5"


def test_empty_boards_against_zero_score_are_valid():
    assert validate_team_score(0, 0, []).valid is True


def test_check_pairing_clean_four_boards():
    boards = [board(1, 1, 0), board(2, 0.5, 0.5), board(3, 1, 0), board(4, 0, 1)]

    assert check_pairing(pairing(2.5, 1.5, boards)) == []


def test_check_pairing_reports_unusual_board_count(caplog):
    boards = [board(1, 1, 0), board(2, 1, 0)]

    with caplog.at_level(logging.WARNING, logger="chessteams.reconciliation"):
        warnings = check_pairing(pairing(2, 0, boards))

    assert warnings == ["Pairing 1.1: unusual board count (2 boards)"]
    assert "unusual board count" in caplog.text


def test_check_pairing_reports_score_mismatch():
    boards = [board(1, 1, 0), board(2, 1, 0), board(3, 1, 0), board(4, 0, 1)]

    warnings = check_pairing(pairing(1, 3, boards))

    assert warnings == ["Pairing 1.1: Score mismatch: team shows 1-3, boards sum to 3-1"]
