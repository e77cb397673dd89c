from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from chessteams import crud
from chessteams.database import SessionLocal, init_db
from chessteams.errors import RoundImportError


def reset_database() -> None:
    from chessteams.database import Base, engine

    Base.metadata.drop_all(bind=engine)
    init_db()


def import_files(
    paths: Sequence[Path],
    round_number: int | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> int:
    db = session_factory()
    try:
        for index, path in enumerate(paths):
            try:
                result = crud.import_round_file(db, path.read_bytes(), path.name, round_number=round_number)
            except (RoundImportError, OSError) as exc:
                message = exc.message if isinstance(exc, RoundImportError) else str(exc)
                print(f"{path.name}: FAILED - {message}")
                remaining = [other.name for other in paths[index + 1 :]]
                if remaining:
                    print(f"Not attempted: {', '.join(remaining)}")
                return 1

            print(
                f"{path.name}: tournament {result.tournament_id} round {result.round_number} - "
                f"{result.pairings_inserted} pairings, {result.boards_inserted} boards"
            )
            for warning in result.warnings:
                print(f"  warning: {warning}")
    finally:
        db.close()

    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import team tournament round files.")
    parser.add_argument("files", nargs="+", type=Path, help="Round spreadsheets (.xlsx), imported in order.")
    parser.add_argument(
        "--round",
        dest="round_number",
        type=int,
        default=None,
        help="Round number to use instead of the one found in the file (single file only).",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables before importing.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    args = parser.parse_args(argv)

    if args.round_number is not None and len(args.files) > 1:
        parser.error("--round can only be used with a single file")

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    if args.reset:
        reset_database()
    else:
        init_db()

    return import_files(args.files, round_number=args.round_number)


if __name__ == "__main__":
    raise SystemExit(main())
