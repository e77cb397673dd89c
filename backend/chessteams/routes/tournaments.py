from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from .. import crud, schemas, serializers
from ..database import get_db

router = APIRouter(tags=["tournaments"])


@router.get("/", response_model=list[schemas.TournamentRead])
def list_tournaments(db: Session = Depends(get_db)) -> list[schemas.TournamentRead]:
    return crud.get_tournaments(db)


@router.get("/{tournament_id}", response_model=schemas.TournamentDetail)
def tournament_detail(tournament_id: int, db: Session = Depends(get_db)) -> schemas.TournamentDetail:
    try:
        tournament = crud.get_tournament_or_raise(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return serializers.tournament_to_detail(tournament, crud.get_round_numbers(db, tournament_id))


@router.get("/{tournament_id}/standings", response_model=list[schemas.TeamStandingRow])
def standings(tournament_id: int, db: Session = Depends(get_db)) -> list[schemas.TeamStandingRow]:
    try:
        teams = crud.get_standings(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [serializers.team_to_standing(team) for team in teams]


@router.get("/{tournament_id}/rounds/{round_number}", response_model=schemas.RoundRead)
def round_detail(
    tournament_id: int,
    round_number: int = Path(ge=1),
    db: Session = Depends(get_db),
) -> schemas.RoundRead:
    try:
        team_round = crud.get_round_or_raise(db, tournament_id, round_number)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return serializers.round_to_read(team_round)


@router.get("/{tournament_id}/players", response_model=list[schemas.PlayerPerformance])
def player_performances(tournament_id: int, db: Session = Depends(get_db)) -> list[schemas.PlayerPerformance]:
    try:
        return crud.build_player_performances(db, tournament_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
