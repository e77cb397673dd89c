import logging
import re
import zipfile
from collections.abc import Sequence
from datetime import date
from io import BytesIO

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import RoundParseError
from .identity import (
    clean_cell,
    detect_round_number,
    extract_player_title,
    is_board_number,
    is_chess_title,
    is_team_pairing_number,
    parse_date,
    parse_int_or_null,
)
from .notation import parse_board_result, parse_team_score
from .reconciliation import check_pairing
from .schemas import BoardPairingData, RoundData, TeamPairingData, TournamentMetadata

logger = logging.getLogger(__name__)

Row = Sequence[object]

METADATA_SCAN_ROWS = 20
_SCORE_HINT_RE = re.compile(r"[-–:½]")
_ROUND_HEADER_RE = re.compile(r"^round\s+(\d+)", re.IGNORECASE)
_ROUND_DATE_RE = re.compile(r"\bon\s+([\d/.\-]+)", re.IGNORECASE)
_LICENCE_RE = re.compile(r"\s*\([^)]*\)")

# Columns of a board row: A board, B white title, C white name, D white rating,
# E result, F black title, G black name, H black rating.
COL_BOARD, COL_WHITE_TITLE, COL_WHITE_NAME, COL_WHITE_RATING = 0, 1, 2, 3
COL_RESULT, COL_BLACK_TITLE, COL_BLACK_NAME, COL_BLACK_RATING = 4, 5, 6, 7


def read_workbook_rows(content: bytes) -> list[list[object]]:
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise RoundParseError(f"Could not read workbook: {exc}") from exc

    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _cell(row: Row, index: int) -> str:
    if index >= len(row):
        return ""
    return clean_cell(row[index])


def _row_text(row: Row) -> str:
    return " ".join(text for text in (clean_cell(value) for value in row) if text)


def _after_colon(row: Row) -> str | None:
    parts = _row_text(row).split(":", maxsplit=1)
    if len(parts) < 2:
        return None
    return parts[1].strip() or None


def _player_name(value: str) -> str | None:
    if not value or value == "-":
        return None
    return value


class RoundTransformer:
    def __init__(self, filename: str):
        self.filename = filename

    def transform(self, rows: Sequence[Row], round_number: int | None = None) -> RoundData:
        logger.info("Parsing %s (%d rows)", self.filename, len(rows))

        metadata = self.extract_metadata(rows)
        if round_number is not None:
            if round_number < 1:
                raise RoundParseError("Invalid round number")
            metadata.round_number = round_number
        elif metadata.round_number is None:
            metadata.round_number = detect_round_number(self.filename)
            if metadata.round_number is not None:
                logger.info("Round number %d taken from file name", metadata.round_number)

        if not metadata.tournament_name:
            raise RoundParseError("Could not determine tournament name")
        if metadata.round_number is None:
            raise RoundParseError("Could not determine round number. Please specify it manually.")

        pairings = self.extract_team_pairings(rows)
        if not pairings:
            raise RoundParseError(f"No team pairings found in {self.filename}")

        warnings: list[str] = []
        for pairing in pairings:
            warnings.extend(check_pairing(pairing))

        logger.info(
            "Parsed %s round %d: %d team pairings, %d boards",
            metadata.tournament_name,
            metadata.round_number,
            len(pairings),
            sum(len(pairing.board_pairings) for pairing in pairings),
        )
        return RoundData(
            tournament_metadata=metadata,
            team_pairings=pairings,
            source_file=self.filename,
            warnings=warnings,
        )

    # -----------------------------------------------------------------------
    # Metadata
    # -----------------------------------------------------------------------

    def extract_metadata(self, rows: Sequence[Row]) -> TournamentMetadata:
        metadata = TournamentMetadata()

        if rows and _cell(rows[0], 0):
            metadata.tournament_name = _cell(rows[0], 0)

        # Row 1 usually carries the section (e.g. "U/13A") belonging to the name.
        scan_start = 1
        if len(rows) > 1 and metadata.tournament_name:
            section = _cell(rows[1], 0)
            lowered = section.lower()
            if (
                section
                and ":" not in section
                and "organizer" not in lowered
                and "round" not in lowered
                and not is_team_pairing_number(section)
            ):
                metadata.tournament_name = f"{metadata.tournament_name} {section}"
                scan_start = 2

        for index in range(scan_start, min(METADATA_SCAN_ROWS, len(rows))):
            row = rows[index]
            first = _cell(row, 0)
            if not first:
                continue
            if is_team_pairing_number(first):
                logger.debug("Metadata scan stopped at row %d", index)
                break
            self._apply_metadata_row(metadata, row, first)

        return metadata

    def _apply_metadata_row(self, metadata: TournamentMetadata, row: Row, first: str) -> None:
        lowered = first.lower()

        if "organizer" in lowered:
            metadata.organizer = _after_colon(row)
        elif "tournament director" in lowered:
            metadata.tournament_director = _after_colon(row)
        elif "deputy chief arbiter" in lowered:
            metadata.deputy_chief_arbiter = self._official_name(row)
        elif "chief arbiter" in lowered:
            metadata.chief_arbiter = self._official_name(row)
        elif "arbiter" in lowered:
            metadata.arbiter = self._official_name(row)
        elif "town" in lowered or "location" in lowered:
            metadata.location = _after_colon(row)
        elif re.match(r"^date\s*:?", lowered):
            metadata.date = self._row_date(row)
        else:
            round_match = _ROUND_HEADER_RE.match(first)
            if round_match:
                metadata.round_number = int(round_match.group(1)) or None
                date_match = _ROUND_DATE_RE.search(_row_text(row))
                if date_match:
                    metadata.round_date = parse_date(date_match.group(1))

    @staticmethod
    def _official_name(row: Row) -> str | None:
        value = _after_colon(row)
        if not value:
            return None
        return _LICENCE_RE.sub("", value).strip() or None

    @staticmethod
    def _row_date(row: Row) -> date | None:
        for value in row[1:]:
            if isinstance(value, (date, int, float)) and not isinstance(value, bool):
                return parse_date(value)
        return parse_date(_after_colon(row))

    # -----------------------------------------------------------------------
    # Pairings
    # -----------------------------------------------------------------------

    def extract_team_pairings(self, rows: Sequence[Row]) -> list[TeamPairingData]:
        pairings: list[TeamPairingData] = []
        current: TeamPairingData | None = None
        in_pairing_block = False

        for index, row in enumerate(rows):
            if not row:
                continue
            first = _cell(row, 0)

            if is_team_pairing_number(first):
                in_pairing_block = True
                current = self.parse_team_pairing_row(row, index)
                if current is not None:
                    pairings.append(current)
                continue

            if not in_pairing_block or not is_board_number(first):
                continue

            if current is None:
                logger.warning("Row %d: board row belongs to a skipped team pairing", index)
                continue

            board = self.parse_board_row(row, index)
            if board is None:
                continue
            if any(existing.board_number == board.board_number for existing in current.board_pairings):
                logger.warning(
                    "Row %d: board %d repeated in pairing %s, skipped",
                    index,
                    board.board_number,
                    current.pairing_number,
                )
                continue
            current.board_pairings.append(board)

        return pairings

    def parse_team_pairing_row(self, row: Row, index: int) -> TeamPairingData | None:
        pairing_number = _cell(row, 0)
        col_d, col_e = _cell(row, 3), _cell(row, 4)
        col_f, col_g = _cell(row, 5), _cell(row, 6)

        # Either A=no B=rank C=team D=blank E=score F=rank G=team
        # or     A=no B=rank C=team D=score E=rank F=team.
        if col_e and _SCORE_HINT_RE.search(col_e) and col_g:
            score_text, black_rank, black_name = col_e, row[5] if len(row) > 5 else None, col_g
        elif col_d and _SCORE_HINT_RE.search(col_d) and col_f:
            score_text, black_rank, black_name = col_d, row[4] if len(row) > 4 else None, col_f
        else:
            logger.warning("Row %d: could not detect the score column of pairing %s", index, pairing_number)
            return None

        white_name = _cell(row, 2)
        if not white_name:
            logger.warning("Row %d: pairing %s has no white team name", index, pairing_number)
            return None
        if white_name == black_name:
            logger.warning("Row %d: pairing %s has %r on both sides", index, pairing_number, white_name)
            return None

        score = parse_team_score(score_text)
        if score is None:
            logger.warning("Row %d: could not parse team score %r", index, score_text)
            return None

        pairing = TeamPairingData(
            pairing_number=pairing_number,
            team_white=white_name,
            team_black=black_name,
            team_white_rank=parse_int_or_null(row[1] if len(row) > 1 else None),
            team_black_rank=parse_int_or_null(black_rank),
            team_white_score=score.white,
            team_black_score=score.black,
            is_forfeit=score.is_forfeit,
        )
        logger.debug(
            "Pairing %s: %s (%s) vs %s (%s)",
            pairing.pairing_number,
            pairing.team_white,
            pairing.team_white_score,
            pairing.team_black,
            pairing.team_black_score,
        )
        return pairing

    def parse_board_row(self, row: Row, index: int) -> BoardPairingData | None:
        board_number = int(_cell(row, COL_BOARD))
        result_text = _cell(row, COL_RESULT)

        result = parse_board_result(result_text)
        if result is None:
            logger.warning("Row %d: could not parse result %r on board %d", index, result_text, board_number)
            return None

        white_title: str | None
        black_title: str | None
        white_title_cell = _cell(row, COL_WHITE_TITLE)
        black_title_cell = _cell(row, COL_BLACK_TITLE)
        if is_chess_title(white_title_cell) or is_chess_title(black_title_cell):
            white_name = _player_name(_cell(row, COL_WHITE_NAME))
            black_name = _player_name(_cell(row, COL_BLACK_NAME))
            white_title = white_title_cell.upper() if is_chess_title(white_title_cell) else None
            black_title = black_title_cell.upper() if is_chess_title(black_title_cell) else None
        else:
            white = extract_player_title(_cell(row, COL_WHITE_NAME))
            black = extract_player_title(_cell(row, COL_BLACK_NAME))
            white_name, white_title = _player_name(white.name), white.title
            black_name, black_title = _player_name(black.name), black.title

        board = BoardPairingData(
            board_number=board_number,
            white_player=white_name,
            black_player=black_name,
            white_rating=parse_int_or_null(row[COL_WHITE_RATING] if len(row) > COL_WHITE_RATING else None),
            black_rating=parse_int_or_null(row[COL_BLACK_RATING] if len(row) > COL_BLACK_RATING else None),
            white_title=white_title if white_name else None,
            black_title=black_title if black_name else None,
            result=result.result,
            white_score=result.white_score,
            black_score=result.black_score,
            white_result=result.white_result,
            black_result=result.black_result,
        )
        logger.debug(
            "  Board %d: %s vs %s (%s)",
            board.board_number,
            board.white_player,
            board.black_player,
            board.result,
        )
        return board


def parse_round_workbook(content: bytes, filename: str, round_number: int | None = None) -> RoundData:
    rows = read_workbook_rows(content)
    return RoundTransformer(filename).transform(rows, round_number=round_number)
