import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def _normalize_text(value: str) -> str:
    return " ".join(value.split())


class EntityResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve_tournament(self, tournament_name: str, metadata: schemas.TournamentMetadata | None = None) -> int:
        name = _normalize_text(tournament_name)
        if not name:
            raise ValueError("Tournament name cannot be empty.")

        existing = self._find_tournament(name)
        if existing is not None:
            return existing

        tournament = models.TeamTournament(tournament_name=name, rounds=0, tournament_type="Team")
        if metadata is not None:
            tournament.organizer = metadata.organizer
            tournament.chief_arbiter = metadata.chief_arbiter
            tournament.deputy_chief_arbiter = metadata.deputy_chief_arbiter
            tournament.tournament_director = metadata.tournament_director
            tournament.arbiter = metadata.arbiter
            tournament.location = metadata.location
            tournament.date = metadata.date

        self.db.add(tournament)
        try:
            self.db.commit()
        except IntegrityError:
            # Another upload created the same tournament first.
            self.db.rollback()
            existing = self._find_tournament(name)
            if existing is None:
                raise
            logger.info("Tournament %r was created concurrently, reusing id %d", name, existing)
            return existing

        logger.info("Created tournament %r (id %d)", name, tournament.id)
        return tournament.id

    def _find_tournament(self, name: str) -> int | None:
        return (
            self.db.query(models.TeamTournament.id)
            .filter(models.TeamTournament.tournament_name == name)
            .scalar()
        )

    def resolve_team(self, tournament_id: int, team_name: str) -> int:
        name = _normalize_text(team_name)
        if not name:
            raise ValueError("Team name cannot be empty.")

        existing = (
            self.db.query(models.Team.id)
            .filter(
                models.Team.team_tournament_id == tournament_id,
                models.Team.team_name == name,
            )
            .scalar()
        )
        if existing is not None:
            return existing

        team = models.Team(
            team_tournament_id=tournament_id,
            team_name=name,
            match_points=0,
            game_points=0,
            tie_breaks={},
        )
        self.db.add(team)
        self.db.flush()
        logger.debug("Created team %r (id %d)", name, team.id)
        return team.id

    def resolve_player(
        self,
        team_id: int,
        player_name: str,
        rating: int | None = None,
        title: str | None = None,
    ) -> int:
        name = _normalize_text(player_name)
        if not name:
            raise ValueError("Player name cannot be empty.")

        existing = (
            self.db.query(models.TeamPlayer)
            .filter(
                models.TeamPlayer.team_id == team_id,
                models.TeamPlayer.player_name == name,
            )
            .first()
        )
        if existing is not None:
            # Stored rating and title are kept as first seen.
            if (rating is not None and existing.rating != rating) or (title is not None and existing.title != title):
                logger.debug(
                    "Player %r seen with rating %s / title %s, keeping stored %s / %s",
                    name,
                    rating,
                    title,
                    existing.rating,
                    existing.title,
                )
            return existing.id

        player = models.TeamPlayer(
            team_id=team_id,
            player_name=name,
            rating=rating,
            title=title,
            games_played=0,
            points=0,
        )
        self.db.add(player)
        self.db.flush()
        logger.debug("Created player %r (id %d)", name, player.id)
        return player.id
