from . import models, schemas


def tournament_to_detail(
    tournament: models.TeamTournament,
    round_numbers: list[int],
) -> schemas.TournamentDetail:
    summary = schemas.TournamentRead.model_validate(tournament)
    return schemas.TournamentDetail(
        **summary.model_dump(),
        round_numbers=round_numbers,
        team_count=len(tournament.teams),
    )


def team_to_standing(team: models.Team) -> schemas.TeamStandingRow:
    return schemas.TeamStandingRow(
        rank=team.rank,
        team_id=team.id,
        team=team.team_name,
        match_points=team.match_points,
        game_points=team.game_points,
        tie_breaks=dict(team.tie_breaks or {}),
    )


def board_to_read(board: models.BoardPairing) -> schemas.BoardPairingRead:
    white = board.white_player
    black = board.black_player

    return schemas.BoardPairingRead(
        id=board.id,
        board_number=board.board_number,
        white_player_id=board.white_player_id,
        white_player=white.player_name if white else None,
        white_title=white.title if white else None,
        white_rating=board.white_rating,
        black_player_id=board.black_player_id,
        black_player=black.player_name if black else None,
        black_title=black.title if black else None,
        black_rating=board.black_rating,
        result=board.result,
        white_score=board.white_score,
        black_score=board.black_score,
        white_result=board.white_result,
        black_result=board.black_result,
    )


def pairing_to_read(pairing: models.TeamPairing) -> schemas.TeamPairingRead:
    sorted_boards = sorted(pairing.boards, key=lambda board: board.board_number)

    return schemas.TeamPairingRead(
        id=pairing.id,
        pairing_number=pairing.pairing_number,
        team_white_id=pairing.team_white_id,
        team_white=pairing.team_white.team_name if pairing.team_white else "Unknown",
        team_black_id=pairing.team_black_id,
        team_black=pairing.team_black.team_name if pairing.team_black else "Unknown",
        team_white_score=pairing.team_white_score,
        team_black_score=pairing.team_black_score,
        is_forfeit=pairing.is_forfeit,
        boards=[board_to_read(board) for board in sorted_boards],
    )


def round_to_read(team_round: models.TeamRound) -> schemas.RoundRead:
    return schemas.RoundRead(
        id=team_round.id,
        tournament_id=team_round.team_tournament_id,
        round_number=team_round.round_number,
        round_date=team_round.round_date,
        source_file=team_round.source_file,
        pairings=[pairing_to_read(pairing) for pairing in team_round.pairings],
    )
