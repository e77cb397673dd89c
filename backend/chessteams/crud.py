import logging
from collections import Counter
from collections.abc import Callable, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .errors import DuplicateRoundError, PersistenceError, RoundImportError, RoundParseError
from .resolver import EntityResolver
from .standings import calculate_team_statistics
from .transformer import parse_round_workbook

logger = logging.getLogger(__name__)

StandingsRoutine = Callable[[Session, int], None]


def _store_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _round_exists(db: Session, tournament_id: int, round_number: int) -> bool:
    return (
        db.query(models.TeamRound.id)
        .filter(
            models.TeamRound.team_tournament_id == tournament_id,
            models.TeamRound.round_number == round_number,
        )
        .first()
        is not None
    )


def _increment_player_stats(db: Session, player_id: int, score: float) -> None:
    db.query(models.TeamPlayer).filter(models.TeamPlayer.id == player_id).update(
        {
            models.TeamPlayer.games_played: models.TeamPlayer.games_played + 1,
            models.TeamPlayer.points: models.TeamPlayer.points + score,
        },
        synchronize_session=False,
    )


# ---------------------------------------------------------------------------
# Round persistence
# ---------------------------------------------------------------------------


def _write_pairings(
    db: Session,
    resolver: EntityResolver,
    tournament_id: int,
    team_round_id: int,
    pairings: Sequence[schemas.TeamPairingData],
) -> tuple[int, int]:
    pairings_inserted = 0
    boards_inserted = 0

    for pairing in pairings:
        white_team_id = resolver.resolve_team(tournament_id, pairing.team_white)
        black_team_id = resolver.resolve_team(tournament_id, pairing.team_black)

        pairing_row = models.TeamPairing(
            team_round_id=team_round_id,
            pairing_number=pairing.pairing_number,
            team_white_id=white_team_id,
            team_black_id=black_team_id,
            team_white_rank=pairing.team_white_rank,
            team_black_rank=pairing.team_black_rank,
            team_white_score=pairing.team_white_score,
            team_black_score=pairing.team_black_score,
            is_forfeit=pairing.is_forfeit,
        )
        db.add(pairing_row)
        db.flush()
        pairings_inserted += 1

        for board in pairing.board_pairings:
            white_player_id = None
            black_player_id = None
            if board.white_player:
                white_player_id = resolver.resolve_player(
                    white_team_id, board.white_player, board.white_rating, board.white_title
                )
            if board.black_player:
                black_player_id = resolver.resolve_player(
                    black_team_id, board.black_player, board.black_rating, board.black_title
                )

            db.add(
                models.BoardPairing(
                    team_pairing_id=pairing_row.id,
                    board_number=board.board_number,
                    white_player_id=white_player_id,
                    black_player_id=black_player_id,
                    white_rating=board.white_rating,
                    black_rating=board.black_rating,
                    result=board.result,
                    white_score=board.white_score,
                    black_score=board.black_score,
                    white_result=board.white_result,
                    black_result=board.black_result,
                )
            )
            db.flush()
            boards_inserted += 1

            if white_player_id is not None:
                _increment_player_stats(db, white_player_id, board.white_score)
            if black_player_id is not None:
                _increment_player_stats(db, black_player_id, board.black_score)

    return pairings_inserted, boards_inserted


def save_team_round(
    db: Session,
    data: schemas.RoundData,
    recalculate_standings: StandingsRoutine = calculate_team_statistics,
) -> schemas.SaveRoundResult:
    """Persist one parsed round.

    The round, its pairings and boards, the player statistics and the
    tournament round counter are written in a single transaction. A second
    upload of the same round number hits the unique constraint and raises
    ``DuplicateRoundError`` with nothing written. Standings are recomputed
    afterwards; a failure there is logged and does not fail the upload.
    """
    metadata = data.tournament_metadata
    if not metadata.tournament_name:
        raise RoundParseError("Could not determine tournament name")
    if metadata.round_number is None:
        raise RoundParseError("Could not determine round number. Please specify it manually.")
    round_number = metadata.round_number

    logger.info(
        "Saving %s round %d (%d team pairings)",
        metadata.tournament_name,
        round_number,
        len(data.team_pairings),
    )

    resolver = EntityResolver(db)
    try:
        tournament_id = resolver.resolve_tournament(metadata.tournament_name, metadata)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Failed to create tournament: {_store_message(exc)}") from exc

    team_round = models.TeamRound(
        team_tournament_id=tournament_id,
        round_number=round_number,
        round_date=metadata.round_date,
        source_file=data.source_file or metadata.tournament_name,
    )
    db.add(team_round)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if _round_exists(db, tournament_id, round_number):
            logger.warning("Round %d already exists for tournament %d", round_number, tournament_id)
            raise DuplicateRoundError(round_number) from exc
        raise PersistenceError(f"Failed to create round: {_store_message(exc)}") from exc

    try:
        pairings_inserted, boards_inserted = _write_pairings(
            db, resolver, tournament_id, team_round.id, data.team_pairings
        )

        tournament = db.get(models.TeamTournament, tournament_id)
        tournament.rounds = max(tournament.rounds or 0, round_number)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Round %d of tournament %d rolled back: %s", round_number, tournament_id, exc)
        raise PersistenceError(f"Failed to save round {round_number}: {_store_message(exc)}") from exc
    except ValueError:
        db.rollback()
        raise

    # Player statistics were incremented in SQL; drop stale in-session copies.
    db.expire_all()

    try:
        recalculate_standings(db, tournament_id)
    except Exception:
        db.rollback()
        logger.exception("Error calculating standings for tournament %d", tournament_id)

    logger.info(
        "Saved round %d of tournament %d: %d pairings, %d boards",
        round_number,
        tournament_id,
        pairings_inserted,
        boards_inserted,
    )
    return schemas.SaveRoundResult(
        tournament_id=tournament_id,
        round_number=round_number,
        pairings_inserted=pairings_inserted,
        boards_inserted=boards_inserted,
    )


def import_round_file(
    db: Session,
    content: bytes,
    filename: str,
    round_number: int | None = None,
    recalculate_standings: StandingsRoutine = calculate_team_statistics,
) -> schemas.UploadResult:
    data = parse_round_workbook(content, filename, round_number=round_number)
    saved = save_team_round(db, data, recalculate_standings=recalculate_standings)
    return schemas.UploadResult(
        **saved.model_dump(),
        source_file=filename,
        warnings=data.warnings,
    )


def import_round_files(
    db: Session,
    files: Sequence[tuple[str, bytes]],
    round_number: int | None = None,
) -> schemas.BatchUploadResult:
    batch = schemas.BatchUploadResult()
    for index, (filename, content) in enumerate(files):
        try:
            batch.results.append(import_round_file(db, content, filename, round_number=round_number))
        except RoundImportError as exc:
            logger.warning("Batch stopped at %s: %s", filename, exc.message)
            batch.failed_file = filename
            batch.error = exc.message
            batch.not_attempted = [name for name, _ in files[index + 1 :]]
            break
    return batch


# ---------------------------------------------------------------------------
# Tournaments, standings and rounds
# ---------------------------------------------------------------------------


def get_tournaments(db: Session) -> list[models.TeamTournament]:
    return db.query(models.TeamTournament).order_by(models.TeamTournament.tournament_name.asc()).all()


def get_tournament_or_raise(db: Session, tournament_id: int) -> models.TeamTournament:
    tournament = db.get(models.TeamTournament, tournament_id)
    if not tournament:
        raise LookupError("Tournament not found.")
    return tournament


def get_round_numbers(db: Session, tournament_id: int) -> list[int]:
    rows = (
        db.query(models.TeamRound.round_number)
        .filter(models.TeamRound.team_tournament_id == tournament_id)
        .order_by(models.TeamRound.round_number.asc())
        .all()
    )
    return [row.round_number for row in rows]


def get_standings(db: Session, tournament_id: int) -> list[models.Team]:
    _ = get_tournament_or_raise(db, tournament_id)
    return (
        db.query(models.Team)
        .filter(models.Team.team_tournament_id == tournament_id)
        .order_by(
            models.Team.rank.is_(None),
            models.Team.rank.asc(),
            models.Team.team_name.asc(),
        )
        .all()
    )


def get_round_or_raise(db: Session, tournament_id: int, round_number: int) -> models.TeamRound:
    team_round = (
        db.query(models.TeamRound)
        .options(
            selectinload(models.TeamRound.pairings).selectinload(models.TeamPairing.team_white),
            selectinload(models.TeamRound.pairings).selectinload(models.TeamPairing.team_black),
            selectinload(models.TeamRound.pairings)
            .selectinload(models.TeamPairing.boards)
            .selectinload(models.BoardPairing.white_player),
            selectinload(models.TeamRound.pairings)
            .selectinload(models.TeamPairing.boards)
            .selectinload(models.BoardPairing.black_player),
        )
        .filter(
            models.TeamRound.team_tournament_id == tournament_id,
            models.TeamRound.round_number == round_number,
        )
        .first()
    )
    if not team_round:
        raise LookupError("Round not found.")
    return team_round


# ---------------------------------------------------------------------------
# Player performance
# ---------------------------------------------------------------------------


def build_player_performances(db: Session, tournament_id: int) -> list[schemas.PlayerPerformance]:
    teams = get_standings(db, tournament_id)
    team_by_id = {team.id: team for team in teams}

    players = (
        db.query(models.TeamPlayer)
        .filter(models.TeamPlayer.team_id.in_(list(team_by_id)))
        .all()
        if team_by_id
        else []
    )
    player_by_id = {player.id: player for player in players}

    boards = (
        db.query(models.BoardPairing, models.TeamRound.round_number)
        .join(models.TeamPairing, models.BoardPairing.team_pairing_id == models.TeamPairing.id)
        .join(models.TeamRound, models.TeamPairing.team_round_id == models.TeamRound.id)
        .filter(models.TeamRound.team_tournament_id == tournament_id)
        .all()
    )

    entries: dict[int, list[schemas.PlayerRoundEntry]] = {player.id: [] for player in players}
    board_counts: dict[int, Counter] = {player.id: Counter() for player in players}

    for board, round_number in boards:
        sides = (
            (board.white_player_id, "W", board.black_player_id, board.black_rating, board.white_result),
            (board.black_player_id, "B", board.white_player_id, board.white_rating, board.black_result),
        )
        for player_id, color, opponent_id, opponent_rating, result in sides:
            if player_id not in entries:
                continue
            opponent = player_by_id.get(opponent_id) if opponent_id is not None else None
            entries[player_id].append(
                schemas.PlayerRoundEntry(
                    round_number=round_number,
                    board_number=board.board_number,
                    color=color,
                    opponent_name=opponent.player_name if opponent else "Forfeit",
                    opponent_rating=opponent_rating,
                    result=result,
                )
            )
            board_counts[player_id][board.board_number] += 1

    performances: list[schemas.PlayerPerformance] = []
    for player in players:
        team = team_by_id[player.team_id]
        most_common = board_counts[player.id].most_common(1)
        performances.append(
            schemas.PlayerPerformance(
                id=player.id,
                player_name=player.player_name,
                title=player.title,
                rating=player.rating,
                team_id=team.id,
                team_name=team.team_name,
                games_played=player.games_played,
                points=player.points,
                board_number=most_common[0][0] if most_common else None,
                rounds=sorted(entries[player.id], key=lambda entry: entry.round_number),
            )
        )

    performances.sort(
        key=lambda item: (
            team_by_id[item.team_id].rank or 999,
            -item.points,
            item.player_name,
        )
    )
    return performances
