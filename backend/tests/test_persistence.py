import logging

import pytest
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from chessteams import crud, models
from chessteams.errors import DuplicateRoundError, PersistenceError
from chessteams.transformer import RoundTransformer

from conftest import pairing_rows, round_rows, two_pairing_round, workbook_bytes


def parsed_round(rows, filename="league.xlsx", round_number=None):
    return RoundTransformer(filename).transform(rows, round_number=round_number)


def row_counts(db):
    return {
        model.__tablename__: db.query(func.count(model.id)).scalar()
        for model in (
            models.TeamTournament,
            models.Team,
            models.TeamPlayer,
            models.TeamRound,
            models.TeamPairing,
            models.BoardPairing,
        )
    }


def test_save_round_end_to_end(db):
    result = crud.save_team_round(db, parsed_round(two_pairing_round()))

    assert result.round_number == 3
    assert result.pairings_inserted == 2
    assert result.boards_inserted == 16
    assert row_counts(db) == {
        "team_tournaments": 1,
        "teams": 4,
        "team_players": 32,
        "team_rounds": 1,
        "team_pairings": 2,
        "board_pairings": 16,
    }
    assert {player.games_played for player in db.query(models.TeamPlayer)} == {1}

    tournament = db.get(models.TeamTournament, result.tournament_id)
    assert tournament.tournament_name == "Club League 2025 Open"
    assert tournament.organizer == "Riga Chess Club"
    assert tournament.rounds == 3
    assert tournament.tournament_type == "Team"


def test_player_points_follow_board_scores(db):
    crud.save_team_round(db, parsed_round(two_pairing_round()))

    knights = db.query(models.Team).filter_by(team_name="Knights").one()
    points = sum(player.points for player in db.query(models.TeamPlayer).filter_by(team_id=knights.id))
    drawn = db.query(models.TeamPlayer).filter_by(player_name="Bishops Player 3").one()

    assert points == 5
    assert drawn.points == 0.5


def test_board_rows_reference_players_and_results(db):
    crud.save_team_round(db, parsed_round(two_pairing_round()))

    board = (
        db.query(models.BoardPairing)
        .join(models.TeamPairing)
        .filter(models.TeamPairing.pairing_number == "3.1", models.BoardPairing.board_number == 8)
        .one()
    )

    assert board.white_player.player_name == "Knights Player 8"
    assert board.black_player.player_name == "Rooks Player 8"
    assert board.result == "0:1"
    assert (board.white_result, board.black_result) == ("loss", "win")


def test_duplicate_round_is_rejected_without_writes(db):
    data = parsed_round(two_pairing_round())
    crud.save_team_round(db, data)
    before = row_counts(db)

    with pytest.raises(DuplicateRoundError) as exc_info:
        crud.save_team_round(db, data)

    assert exc_info.value.message == "Round 3 already exists for this tournament. Delete it first to re-upload."
    assert row_counts(db) == before
    assert {player.games_played for player in db.query(models.TeamPlayer)} == {1}


def test_second_round_reuses_entities(db):
    crud.save_team_round(db, parsed_round(two_pairing_round()))
    second = round_rows(
        pairing_rows("4.1", "Knights", "Bishops"),
        pairing_rows("4.2", "Pawns", "Rooks"),
        round_line="Round 4 on 2025/10/04",
        organizer="Someone Else",
    )

    crud.save_team_round(db, parsed_round(second))

    counts = row_counts(db)
    assert counts["team_tournaments"] == 1
    assert counts["teams"] == 4
    assert counts["team_players"] == 32
    assert counts["team_rounds"] == 2
    assert {player.games_played for player in db.query(models.TeamPlayer)} == {2}

    tournament = db.query(models.TeamTournament).one()
    assert tournament.rounds == 4
    assert tournament.organizer == "Riga Chess Club"


def test_round_counter_keeps_highest_round(db):
    crud.save_team_round(db, parsed_round(two_pairing_round()))
    crud.save_team_round(db, parsed_round(two_pairing_round(), round_number=1))

    assert db.query(models.TeamTournament).one().rounds == 3


def test_forfeit_board_without_player(db):
    rows = round_rows(
        [
            ["3.1", 1, "Knights", None, "1F - 0", 2, "Rooks"],
            [1, None, "John Smith", 1900, "+ : -", None, "-", None],
        ]
    )

    result = crud.save_team_round(db, parsed_round(rows))

    board = db.query(models.BoardPairing).one()
    player = db.query(models.TeamPlayer).one()
    pairing = db.query(models.TeamPairing).one()
    assert result.boards_inserted == 1
    assert board.black_player_id is None
    assert board.white_player_id == player.id
    assert (player.games_played, player.points) == (1, 1.0)
    assert pairing.is_forfeit is True


def test_standings_after_round(db):
    result = crud.save_team_round(db, parsed_round(two_pairing_round()))

    standings = crud.get_standings(db, result.tournament_id)

    assert [team.team_name for team in standings] == ["Knights", "Bishops", "Pawns", "Rooks"]
    assert [team.rank for team in standings] == [1, 2, 3, 4]
    assert [team.match_points for team in standings] == [2, 1, 1, 0]
    assert [team.game_points for team in standings] == [5, 4, 4, 3]
    assert standings[0].tie_breaks == {"buchholz": 0.0, "matches_played": 1, "wins": 1, "draws": 0, "losses": 0}
    assert standings[3].tie_breaks["buchholz"] == 2.0


def test_standings_failure_does_not_fail_upload(db, caplog):
    def broken_standings(_db, _tournament_id):
        raise SQLAlchemyError("standings table locked")

    with caplog.at_level(logging.ERROR, logger="chessteams.crud"):
        result = crud.save_team_round(db, parsed_round(two_pairing_round()), recalculate_standings=broken_standings)

    assert result.boards_inserted == 16
    assert row_counts(db)["board_pairings"] == 16
    assert "Error calculating standings" in caplog.text


def test_standings_routine_error_of_any_kind_is_not_fatal(db, caplog):
    def exploding_standings(_db, _tournament_id):
        raise RuntimeError("standings routine exploded")

    with caplog.at_level(logging.ERROR, logger="chessteams.crud"):
        result = crud.save_team_round(db, parsed_round(two_pairing_round()), recalculate_standings=exploding_standings)

    assert result.round_number == 3
    assert row_counts(db)["team_rounds"] == 1
    assert "standings routine exploded" in caplog.text


def test_same_team_pairing_row_does_not_abort_round(db):
    rows = round_rows(
        pairing_rows("3.1", "Knights", "Rooks"),
        pairing_rows("3.2", "Bishops", "Bishops"),
    )

    result = crud.save_team_round(db, parsed_round(rows))

    assert result.pairings_inserted == 1
    assert result.boards_inserted == 8
    assert [team.team_name for team in db.query(models.Team).order_by(models.Team.team_name)] == ["Knights", "Rooks"]


def same_team_round():
    data = parsed_round(two_pairing_round())
    data.team_pairings[1].team_black = data.team_pairings[1].team_white
    return data


def test_failed_round_is_rolled_back(db):
    with pytest.raises(PersistenceError, match="Failed to save round 3"):
        crud.save_team_round(db, same_team_round())

    counts = row_counts(db)
    assert counts["team_tournaments"] == 1
    assert counts["team_rounds"] == 0
    assert counts["teams"] == 0
    assert counts["team_players"] == 0
    assert counts["team_pairings"] == 0
    assert counts["board_pairings"] == 0


def test_failed_round_can_be_uploaded_again(db):
    with pytest.raises(PersistenceError):
        crud.save_team_round(db, same_team_round())

    result = crud.save_team_round(db, parsed_round(two_pairing_round()))

    assert result.round_number == 3
    assert row_counts(db)["team_rounds"] == 1


def test_import_round_file_reports_warnings(db):
    content = workbook_bytes(round_rows(pairing_rows("3.1", "Knights", "Rooks", score="6 - 2")))

    result = crud.import_round_file(db, content, "Round_3.xlsx")

    assert result.source_file == "Round_3.xlsx"
    assert result.warnings == ["Pairing 3.1: Score mismatch: team shows 6-2, boards sum to 4-4"]
    assert db.query(models.TeamRound).one().source_file == "Round_3.xlsx"


def test_batch_stops_at_first_failure(db):
    round_three = workbook_bytes(two_pairing_round())
    round_five = workbook_bytes(two_pairing_round(round_line="Round 5"))

    batch = crud.import_round_files(
        db,
        [
            ("Round_3.xlsx", round_three),
            ("Round_3_again.xlsx", round_three),
            ("Round_5.xlsx", round_five),
        ],
    )

    assert [result.source_file for result in batch.results] == ["Round_3.xlsx"]
    assert batch.failed_file == "Round_3_again.xlsx"
    assert batch.error.startswith("Round 3 already exists")
    assert batch.not_attempted == ["Round_5.xlsx"]
    assert crud.get_round_numbers(db, batch.results[0].tournament_id) == [3]


def test_player_performances(db):
    result = crud.save_team_round(db, parsed_round(two_pairing_round()))

    performances = crud.build_player_performances(db, result.tournament_id)

    assert len(performances) == 32
    leader = performances[0]
    assert leader.team_name == "Knights"
    assert leader.points == 1
    assert leader.board_number == 1
    assert [(entry.color, entry.opponent_name, entry.result) for entry in leader.rounds] == [
        ("W", "Rooks Player 1", "win")
    ]


def test_lookups_raise_for_unknown_ids(db):
    with pytest.raises(LookupError, match="Tournament not found."):
        crud.get_standings(db, 999)

    result = crud.save_team_round(db, parsed_round(two_pairing_round()))
    with pytest.raises(LookupError, match="Round not found."):
        crud.get_round_or_raise(db, result.tournament_id, 9)
