import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from . import models
from .notation import calculate_match_result

logger = logging.getLogger(__name__)

MATCH_POINTS = {"win": 2, "draw": 1, "loss": 0}


def calculate_team_statistics(db: Session, tournament_id: int) -> None:
    teams = (
        db.query(models.Team)
        .filter(models.Team.team_tournament_id == tournament_id)
        .all()
    )
    pairings = (
        db.query(models.TeamPairing)
        .join(models.TeamRound, models.TeamPairing.team_round_id == models.TeamRound.id)
        .filter(models.TeamRound.team_tournament_id == tournament_id)
        .all()
    )

    table: dict[int, dict[str, float]] = {
        team.id: {
            "match_points": 0,
            "game_points": 0,
            "matches_played": 0,
            "wins": 0,
            "draws": 0,
            "losses": 0,
        }
        for team in teams
    }
    opponents: dict[int, list[int]] = defaultdict(list)

    for pairing in pairings:
        white_id = pairing.team_white_id
        black_id = pairing.team_black_id
        if white_id not in table or black_id not in table:
            continue

        white_result = calculate_match_result(pairing.team_white_score, pairing.team_black_score)
        black_result = calculate_match_result(pairing.team_black_score, pairing.team_white_score)

        for team_id, score, result in (
            (white_id, pairing.team_white_score, white_result),
            (black_id, pairing.team_black_score, black_result),
        ):
            row = table[team_id]
            row["matches_played"] += 1
            row["game_points"] += score
            row["match_points"] += MATCH_POINTS[result]
            row[{"win": "wins", "draw": "draws", "loss": "losses"}[result]] += 1

        opponents[white_id].append(black_id)
        opponents[black_id].append(white_id)

    buchholz = {
        team_id: float(sum(table[opponent]["match_points"] for opponent in opponents[team_id]))
        for team_id in table
    }

    ranked = sorted(
        teams,
        key=lambda team: (
            -table[team.id]["match_points"],
            -table[team.id]["game_points"],
            -buchholz[team.id],
            team.team_name,
        ),
    )

    for rank, team in enumerate(ranked, start=1):
        row = table[team.id]
        team.rank = rank
        team.match_points = row["match_points"]
        team.game_points = row["game_points"]
        team.tie_breaks = {
            "buchholz": buchholz[team.id],
            "matches_played": row["matches_played"],
            "wins": row["wins"],
            "draws": row["draws"],
            "losses": row["losses"],
        }

    db.commit()
    logger.info("Standings recalculated for tournament %d (%d teams)", tournament_id, len(teams))
