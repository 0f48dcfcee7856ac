"""Common dependencies for FastAPI routes.

Services are built once by the application factory and kept on
``app.state``; these helpers hand them to route handlers so routes
never construct storage or gateway objects themselves.
"""

from __future__ import annotations

from fastapi import Request, UploadFile

from expense_tracker.core.config import Settings
from expense_tracker.core.errors import InputError
from expense_tracker.services.bill_service import BillService
from expense_tracker.services.confirmation_service import ConfirmationService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_bill_service(request: Request) -> BillService:
    return request.app.state.bill_service


def get_confirmation_service(request: Request) -> ConfirmationService:
    return request.app.state.confirmation_service


async def read_upload(upload: UploadFile | None, settings: Settings) -> bytes:
    """Validate an uploaded bill image and return its bytes."""
    if upload is None or not upload.filename:
        raise InputError("No file uploaded; send the image in the 'bill' form field")
    ext = "." + upload.filename.rsplit(".", 1)[-1].lower() if "." in upload.filename else ""
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise InputError(
            "Only image files are allowed",
            details={"filename": upload.filename, "allowed": sorted(settings.ALLOWED_EXTENSIONS)},
        )
    contents = await upload.read()
    if not contents:
        raise InputError("Uploaded file is empty")
    if len(contents) > settings.MAX_UPLOAD_SIZE:
        raise InputError(f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB")
    return contents
