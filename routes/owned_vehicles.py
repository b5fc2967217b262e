"""
Owned-vehicle API routes.

CSV import of a user's collection and single-product matching for the
manual entry form.
"""

from fastapi import APIRouter, UploadFile, File, Header
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from config import settings
from models.catalog import ProductMatchRequest, ProductMatchResponse
from models.vehicle_import import ImportResponse
from services.vehicle_import_service import get_vehicle_import_service
from services.product_match_service import get_product_match_service
from exceptions import AppError, CSVParseError, ImportFileError

logger = structlog.get_logger(__name__)

router = APIRouter()

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "text/plain",
    "application/octet-stream",
}

# Exports from Japanese spreadsheet tools are often Shift_JIS
FALLBACK_ENCODINGS = ("cp932",)


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# HELPERS
# ===================

def check_upload(filename: Optional[str], content_type: Optional[str]) -> None:
    """Reject uploads that are clearly not CSV files."""
    if not filename or not filename.lower().endswith(".csv"):
        raise ImportFileError(
            "Only .csv files can be imported",
            details={"filename": filename}
        )
    if content_type and content_type.split(";")[0].strip().lower() not in CSV_CONTENT_TYPES:
        raise ImportFileError(
            f"Unsupported content type: {content_type}",
            details={"content_type": content_type}
        )


def decode_csv(content: bytes) -> str:
    """
    Decode uploaded bytes as UTF-8 (BOM allowed), falling back to cp932.

    Raises:
        CSVParseError: If the file is empty or cannot be decoded
    """
    if not content.strip():
        raise CSVParseError("CSV file is empty")

    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    for encoding in FALLBACK_ENCODINGS:
        try:
            text = content.decode(encoding)
        except UnicodeDecodeError:
            continue
        logger.info("csv_decoded_with_fallback", encoding=encoding)
        return text

    raise CSVParseError(
        "CSV file encoding not recognized (expected UTF-8 or Shift_JIS)"
    )


# ===================
# ROUTES
# ===================

@router.post("/import", response_model=ImportResponse)
async def import_owned_vehicles(
    file: UploadFile = File(..., description="Owned-vehicle CSV export"),
    x_user_id: int = Header(..., description="Owning user ID"),
):
    """
    Import owned vehicles from a CSV file.

    Rows that match a catalog entry are linked to it; the rest are stored
    as independent vehicles. Set products also get one record per
    component. Row problems are reported in the response, not raised.

    Raises:
        400: Not a CSV file
        404: User not found
        413: File too large
        422: Empty file, missing header or too few columns
    """
    logger.info(
        "owned_vehicle_import_requested",
        user_id=x_user_id,
        filename=file.filename,
        content_type=file.content_type
    )

    try:
        check_upload(file.filename, file.content_type)

        content = await file.read()
        if len(content) > settings.import_max_file_bytes:
            raise ImportFileError(
                "CSV file is too large",
                status_code=413,
                details={
                    "size": len(content),
                    "max_size": settings.import_max_file_bytes
                }
            )

        text = decode_csv(content)

        service = get_vehicle_import_service()
        report = service.import_csv(text, x_user_id)

        return ImportResponse(message="Import completed", results=report)

    except Exception as e:
        return handle_error(e)


@router.post("/match-product", response_model=ProductMatchResponse)
async def match_product(data: ProductMatchRequest):
    """
    Look up a catalog product by brand and product code.

    Raises:
        404: No product matches
    """
    try:
        service = get_product_match_service()
        return service.match(data.brand, data.product_code)

    except Exception as e:
        return handle_error(e)
