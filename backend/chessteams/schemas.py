import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ORMBaseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


GameResult = Literal["win", "draw", "loss", "forfeit"]
MatchResult = Literal["win", "draw", "loss"]
ChessTitle = Literal["GM", "IM", "FM", "CM", "WGM", "WIM", "WFM", "WCM", "NM"]


# ---------------------------------------------------------------------------
# Parsed notation
# ---------------------------------------------------------------------------


class TeamScore(BaseModel):
    white: float
    black: float
    is_forfeit: bool = False


class BoardResult(BaseModel):
    result: str
    white_score: float
    black_score: float
    white_result: GameResult
    black_result: GameResult


class PlayerName(BaseModel):
    name: str
    title: ChessTitle | None = None


class BoardScore(BaseModel):
    white: float
    black: float


class ScoreCheck(BaseModel):
    valid: bool
    message: str | None = None


# ---------------------------------------------------------------------------
# Round data produced from a workbook
# ---------------------------------------------------------------------------


class TournamentMetadata(BaseModel):
    tournament_name: str | None = None
    organizer: str | None = None
    chief_arbiter: str | None = None
    deputy_chief_arbiter: str | None = None
    tournament_director: str | None = None
    arbiter: str | None = None
    location: str | None = None
    date: datetime.date | None = None
    round_number: int | None = Field(default=None, ge=1)
    round_date: datetime.date | None = None


class BoardPairingData(BaseModel):
    board_number: int = Field(ge=1, le=8)
    white_player: str | None = None
    black_player: str | None = None
    white_rating: int | None = None
    black_rating: int | None = None
    white_title: ChessTitle | None = None
    black_title: ChessTitle | None = None
    result: str
    white_score: float
    black_score: float
    white_result: GameResult
    black_result: GameResult


class TeamPairingData(BaseModel):
    pairing_number: str
    team_white: str
    team_black: str
    team_white_rank: int | None = None
    team_black_rank: int | None = None
    team_white_score: float
    team_black_score: float
    is_forfeit: bool = False
    board_pairings: list[BoardPairingData] = Field(default_factory=list)


class RoundData(BaseModel):
    tournament_metadata: TournamentMetadata
    team_pairings: list[TeamPairingData] = Field(default_factory=list)
    source_file: str | None = None
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Upload results
# ---------------------------------------------------------------------------


class SaveRoundResult(BaseModel):
    tournament_id: int
    round_number: int
    pairings_inserted: int
    boards_inserted: int


class UploadResult(SaveRoundResult):
    source_file: str | None = None
    warnings: list[str] = Field(default_factory=list)


class BatchUploadResult(BaseModel):
    results: list[UploadResult] = Field(default_factory=list)
    failed_file: str | None = None
    error: str | None = None
    not_attempted: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class TournamentRead(ORMBaseModel):
    id: int
    tournament_name: str
    organizer: str | None = None
    chief_arbiter: str | None = None
    deputy_chief_arbiter: str | None = None
    tournament_director: str | None = None
    arbiter: str | None = None
    location: str | None = None
    date: datetime.date | None = None
    rounds: int
    tournament_type: str


class TournamentDetail(TournamentRead):
    round_numbers: list[int] = Field(default_factory=list)
    team_count: int = 0


class TeamStandingRow(BaseModel):
    rank: int | None = None
    team_id: int
    team: str
    match_points: float
    game_points: float
    tie_breaks: dict[str, float] = Field(default_factory=dict)


class BoardPairingRead(BaseModel):
    id: int
    board_number: int
    white_player_id: int | None = None
    white_player: str | None = None
    white_title: str | None = None
    white_rating: int | None = None
    black_player_id: int | None = None
    black_player: str | None = None
    black_title: str | None = None
    black_rating: int | None = None
    result: str
    white_score: float
    black_score: float
    white_result: GameResult
    black_result: GameResult


class TeamPairingRead(BaseModel):
    id: int
    pairing_number: str
    team_white_id: int
    team_white: str
    team_black_id: int
    team_black: str
    team_white_score: float
    team_black_score: float
    is_forfeit: bool
    boards: list[BoardPairingRead] = Field(default_factory=list)


class RoundRead(BaseModel):
    id: int
    tournament_id: int
    round_number: int
    round_date: datetime.date | None = None
    source_file: str | None = None
    pairings: list[TeamPairingRead] = Field(default_factory=list)


class PlayerRoundEntry(BaseModel):
    round_number: int
    board_number: int
    color: Literal["W", "B"]
    opponent_name: str
    opponent_rating: int | None = None
    result: GameResult


class PlayerPerformance(BaseModel):
    id: int
    player_name: str
    title: str | None = None
    rating: int | None = None
    team_id: int
    team_name: str
    games_played: int
    points: float
    board_number: int | None = None
    rounds: list[PlayerRoundEntry] = Field(default_factory=list)
