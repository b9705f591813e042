"""HTTP API for the signup ledger.

Handlers parse requests, call the ledger and map domain errors to
status codes; they never expose internal error details.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from signup_ledger.config import Settings, configure_logging, load_settings
from signup_ledger.services.export_service import ExportVariant, export_filename, ledger_to_dict
from signup_ledger.services.ledger_factory import build_ledger
from signup_ledger.services.ledger_service import SignupLedger
from signup_ledger.utils.date_utils import utc_timestamp
from signup_ledger.utils.exceptions import (
    ConflictError,
    LedgerError,
    StorageUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)


class AttendeeIn(BaseModel):
    """Signup request body; presence of fields is checked by the ledger."""

    dateKey: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    mass: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _attachment(content: str, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _variant(label: str) -> ExportVariant:
    try:
        return ExportVariant.from_label(label)
    except ValueError:
        raise StarletteHTTPException(status_code=404)


def create_app(ledger: SignupLedger, settings: Settings) -> FastAPI:
    """Build the FastAPI application around an explicit ledger instance."""
    app = FastAPI(title="Signup Ledger")
    app.state.ledger = ledger
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------- Error mapping ----------------
    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        return _error(400, exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error(400, exc.message)

    @app.exception_handler(StorageUnavailable)
    async def handle_storage_unavailable(request: Request, exc: StorageUnavailable):
        return _error(500, exc.message)

    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, exc: LedgerError):
        logger.error("Unhandled ledger error on %s: %s", request.url.path, exc)
        return _error(500, "Internal server error")

    @app.exception_handler(RequestValidationError)
    async def handle_bad_request(request: Request, exc: RequestValidationError):
        return _error(400, "Missing required fields")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s", request.url.path)
        return _error(500, "Internal server error")

    # ---------------- Routes ----------------
    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": utc_timestamp(),
            "githubConfigured": settings.remote_configured,
            "storageBackend": ledger.backend.name,
        }

    @app.get("/api/calendar")
    def get_calendar():
        return ledger_to_dict(ledger.load(), ExportVariant.FULL)

    @app.get("/api/calendar/public")
    def get_public_calendar():
        ledger.load()
        return {
            date_key: [attendee.to_dict() for attendee in attendees]
            for date_key, attendees in ledger.get_public_view().items()
        }

    @app.post("/api/attendee")
    def add_attendee(body: AttendeeIn):
        ledger.add_attendee(body.dateKey, body.name, body.phone, body.mass)
        return {"success": True, "message": "Attendee added successfully"}

    @app.get("/api/attendees/{date_key}")
    def get_attendees(date_key: str):
        try:
            ledger.load()
        except StorageUnavailable:
            logger.warning("Serving cached attendees for %s", date_key)
        return [record.to_dict() for record in ledger.get_by_date(date_key)]

    @app.get("/api/download/{variant}")
    def download_json(variant: str):
        export_variant = _variant(variant)
        ledger.load()
        return _attachment(
            ledger.export_json(export_variant),
            "application/json",
            export_filename(export_variant, "json"),
        )

    @app.get("/api/csv/files")
    def list_csv_files():
        return [info.to_dict() for info in ledger.list_csv_files()]

    @app.get("/api/csv/download/{filename}")
    def download_csv_file(filename: str):
        content = ledger.read_csv_file(filename)
        if content is None:
            return _error(404, "File not found")
        return _attachment(content, "text/csv", filename)

    @app.get("/api/csv/{variant}")
    def download_csv(variant: str):
        export_variant = _variant(variant)
        ledger.load()
        return _attachment(
            ledger.export_csv(export_variant),
            "text/csv",
            export_filename(export_variant, "csv"),
        )

    @app.post("/api/csv/write/{variant}")
    def write_csv(variant: str):
        export_variant = _variant(variant)
        ledger.load()
        filename = ledger.write_csv(export_variant)
        label = "Backend" if export_variant is ExportVariant.FULL else "Public"
        return {
            "success": True,
            "message": f"{label} CSV file written successfully",
            "filename": filename,
        }

    return app


def app_from_env() -> FastAPI:
    """Application factory for `uvicorn --factory signup_ledger.api.server:app_from_env`."""
    settings = load_settings()
    configure_logging(settings.log_level)
    return create_app(build_ledger(settings), settings)


def main() -> None:
    import uvicorn

    app = app_from_env()
    settings = app.state.settings
    logger.info("Thanksgiving calendar API listening on http://%s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
