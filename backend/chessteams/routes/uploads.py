import logging
import os

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db
from ..errors import DuplicateRoundError, PersistenceError, RoundImportError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))


def _http_error(exc: RoundImportError) -> HTTPException:
    if isinstance(exc, DuplicateRoundError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, PersistenceError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.message)


def _read_upload(file: UploadFile) -> bytes:
    content = file.file.read()
    if len(content) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Max {MAX_UPLOAD_MB}MB",
        )
    return content


@router.post("/rounds", response_model=schemas.UploadResult, status_code=status.HTTP_201_CREATED)
def upload_round(
    file: UploadFile | None = File(default=None),
    round_number: int | None = Form(default=None, ge=1),
    db: Session = Depends(get_db),
) -> schemas.UploadResult:
    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")

    content = _read_upload(file)
    try:
        result = crud.import_round_file(db, content, file.filename, round_number=round_number)
    except RoundImportError as exc:
        logger.warning("Upload of %s failed: %s", file.filename, exc.message)
        raise _http_error(exc) from exc

    if result.warnings:
        logger.warning("Upload of %s saved with %d warnings", file.filename, len(result.warnings))
    return result


@router.post("/rounds/batch", response_model=schemas.BatchUploadResult)
def upload_rounds(
    files: list[UploadFile] | None = File(default=None),
    round_number: int | None = Form(default=None, ge=1),
    db: Session = Depends(get_db),
) -> schemas.BatchUploadResult:
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    if round_number is not None and len(files) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A round number can only be given for a single file.",
        )

    payload = [(file.filename or "uploaded.xlsx", _read_upload(file)) for file in files]
    return crud.import_round_files(db, payload, round_number=round_number)
