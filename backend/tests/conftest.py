from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy.pool import StaticPool

from chessteams.database import build_engine, build_session_factory, get_db, init_db
from chessteams.main import app
from chessteams.notation import format_score

DEFAULT_RESULTS = ["1 : 0", "0 : 1", "½ : ½", "1 : 0", "0 : 1", "½ : ½", "1 : 0", "0 : 1"]

RESULT_SCORES = {
    "1 : 0": (1.0, 0.0),
    "0 : 1": (0.0, 1.0),
    "½ : ½": (0.5, 0.5),
    "+ : -": (1.0, 0.0),
    "- : +": (0.0, 1.0),
    "- : -": (0.0, 0.0),
}


def pairing_rows(
    number: str,
    white_team: str,
    black_team: str,
    results: list[str] | None = None,
    score: str | None = None,
) -> list[list[object]]:
    results = results or DEFAULT_RESULTS
    if score is None:
        white_total = sum(RESULT_SCORES[result][0] for result in results)
        black_total = sum(RESULT_SCORES[result][1] for result in results)
        score = f"{format_score(white_total)} - {format_score(black_total)}"

    rows: list[list[object]] = [[number, 1, white_team, None, score, 2, black_team]]
    for board, result in enumerate(results, start=1):
        rows.append(
            [
                board,
                None,
                f"{white_team} Player {board}",
                2000 - board * 10,
                result,
                None,
                f"{black_team} Player {board}",
                1990 - board * 10,
            ]
        )
    return rows


def round_rows(
    *pairings: list[list[object]],
    tournament_name: str = "Club League 2025",
    section: str | None = "Open",
    round_line: str | None = "Round 3 on 2025/10/03 at 14:00",
    organizer: str = "Riga Chess Club",
) -> list[list[object]]:
    rows: list[list[object]] = [[tournament_name]]
    rows.append([section] if section else [])
    rows.extend(
        [
            [f"Organizer : {organizer}"],
            ["Chief Arbiter : IA Anna Berzina (LAT-1234)"],
            ["Deputy Chief Arbiter : FA Janis Ozols (LAT-99)"],
            ["Town : Riga"],
            ["Date : 2025/10/03 to 2025/10/04"],
            [],
        ]
    )
    if round_line:
        rows.append([round_line])
    rows.append(["Bo.", None, "Team", None, "Res.", None, "Team"])
    for pairing in pairings:
        rows.extend(pairing)
    return rows


def two_pairing_round(round_line: str | None = "Round 3 on 2025/10/03 at 14:00", **kwargs) -> list[list[object]]:
    return round_rows(
        pairing_rows("3.1", "Knights", "Rooks", results=["1 : 0"] * 5 + ["0 : 1"] * 3),
        pairing_rows("3.2", "Bishops", "Pawns"),
        round_line=round_line,
        **kwargs,
    )


def workbook_bytes(rows: list[list[object]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
