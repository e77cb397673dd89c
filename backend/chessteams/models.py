from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base

RESULT_VALUES = "('win', 'draw', 'loss', 'forfeit')"
BOARD_SCORE_VALUES = "(0, 0.5, 1)"


class TeamTournament(Base):
    __tablename__ = "team_tournaments"

    id = Column(Integer, primary_key=True, index=True)
    tournament_name = Column(String(255), nullable=False)

    organizer = Column(String(255), nullable=True)
    chief_arbiter = Column(String(255), nullable=True)
    deputy_chief_arbiter = Column(String(255), nullable=True)
    tournament_director = Column(String(255), nullable=True)
    arbiter = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    date = Column(Date, nullable=True)

    rounds = Column(Integer, default=0, nullable=False)
    tournament_type = Column(String(32), default="Team", nullable=False)

    teams = relationship("Team", back_populates="tournament", cascade="all, delete-orphan")
    team_rounds = relationship("TeamRound", back_populates="tournament", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tournament_name", name="uq_tournament_name"),
        CheckConstraint("rounds >= 0", name="ck_tournament_rounds_nonnegative"),
    )


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    team_tournament_id = Column(Integer, ForeignKey("team_tournaments.id"), nullable=False, index=True)
    team_name = Column(String(255), nullable=False)

    rank = Column(Integer, nullable=True)
    match_points = Column(Float, default=0, nullable=False)
    game_points = Column(Float, default=0, nullable=False)
    tie_breaks = Column(JSON, default=dict, nullable=False)

    tournament = relationship("TeamTournament", back_populates="teams")
    players = relationship("TeamPlayer", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("team_tournament_id", "team_name", name="uq_team_tournament_name"),
    )


class TeamPlayer(Base):
    __tablename__ = "team_players"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    player_name = Column(String(255), nullable=False)

    rating = Column(Integer, nullable=True)
    title = Column(String(8), nullable=True)
    games_played = Column(Integer, default=0, nullable=False)
    points = Column(Float, default=0, nullable=False)

    team = relationship("Team", back_populates="players")

    __table_args__ = (
        UniqueConstraint("team_id", "player_name", name="uq_player_team_name"),
        CheckConstraint("games_played >= 0", name="ck_player_games_nonnegative"),
        CheckConstraint("points >= 0", name="ck_player_points_nonnegative"),
    )


class TeamRound(Base):
    __tablename__ = "team_rounds"

    id = Column(Integer, primary_key=True, index=True)
    team_tournament_id = Column(Integer, ForeignKey("team_tournaments.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    round_date = Column(Date, nullable=True)
    source_file = Column(String(255), nullable=True)

    tournament = relationship("TeamTournament", back_populates="team_rounds")
    pairings = relationship(
        "TeamPairing",
        back_populates="team_round",
        cascade="all, delete-orphan",
        order_by="TeamPairing.id",
    )

    __table_args__ = (
        UniqueConstraint("team_tournament_id", "round_number", name="uq_round_tournament_number"),
        CheckConstraint("round_number >= 1", name="ck_round_number_positive"),
    )


class TeamPairing(Base):
    __tablename__ = "team_pairings"

    id = Column(Integer, primary_key=True, index=True)
    team_round_id = Column(Integer, ForeignKey("team_rounds.id"), nullable=False, index=True)
    pairing_number = Column(String(16), nullable=False)

    team_white_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    team_black_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    team_white_rank = Column(Integer, nullable=True)
    team_black_rank = Column(Integer, nullable=True)

    team_white_score = Column(Float, nullable=False)
    team_black_score = Column(Float, nullable=False)
    is_forfeit = Column(Boolean, default=False, nullable=False)

    team_round = relationship("TeamRound", back_populates="pairings")
    team_white = relationship("Team", foreign_keys=[team_white_id])
    team_black = relationship("Team", foreign_keys=[team_black_id])
    boards = relationship("BoardPairing", back_populates="team_pairing", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("team_white_id <> team_black_id", name="ck_pairing_distinct_teams"),
        CheckConstraint("team_white_score >= 0", name="ck_pairing_white_score_nonnegative"),
        CheckConstraint("team_black_score >= 0", name="ck_pairing_black_score_nonnegative"),
    )


class BoardPairing(Base):
    __tablename__ = "board_pairings"

    id = Column(Integer, primary_key=True, index=True)
    team_pairing_id = Column(Integer, ForeignKey("team_pairings.id"), nullable=False, index=True)
    board_number = Column(Integer, nullable=False)

    white_player_id = Column(Integer, ForeignKey("team_players.id"), nullable=True, index=True)
    black_player_id = Column(Integer, ForeignKey("team_players.id"), nullable=True, index=True)

    # Ratings at the time of play, independent of the player's stored rating.
    white_rating = Column(Integer, nullable=True)
    black_rating = Column(Integer, nullable=True)

    result = Column(String(8), nullable=False)
    white_score = Column(Float, nullable=False)
    black_score = Column(Float, nullable=False)
    white_result = Column(String(16), nullable=False)
    black_result = Column(String(16), nullable=False)

    team_pairing = relationship("TeamPairing", back_populates="boards")
    white_player = relationship("TeamPlayer", foreign_keys=[white_player_id])
    black_player = relationship("TeamPlayer", foreign_keys=[black_player_id])

    __table_args__ = (
        CheckConstraint("board_number >= 1 and board_number <= 8", name="ck_board_number_range"),
        CheckConstraint(f"white_score in {BOARD_SCORE_VALUES}", name="ck_board_white_score_valid"),
        CheckConstraint(f"black_score in {BOARD_SCORE_VALUES}", name="ck_board_black_score_valid"),
        CheckConstraint(f"white_result in {RESULT_VALUES}", name="ck_board_white_result_valid"),
        CheckConstraint(f"black_result in {RESULT_VALUES}", name="ck_board_black_result_valid"),
    )
