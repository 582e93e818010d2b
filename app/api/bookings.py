from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError
from typing import List

from app.core.logger import logger
from app.models.api_models import BookingRequest, BookingResponse
from app.models.db_models import BookingRecord
from app.services.backup_service import BackupManager
from app.services.booking_service import BookingService
from app.services.export_service import bookings_to_csv, bookings_to_html

router = APIRouter()


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_backup_manager(request: Request) -> BackupManager:
    return request.app.state.backup_manager


async def parse_booking_request(request: Request) -> BookingRequest:
    """
    Accepts both the HTML form (urlencoded / multipart) and JSON bodies.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            payload = await request.json()
            if not isinstance(payload, dict):
                raise ValueError("JSON body must be an object")
        else:
            form = await request.form()
            payload = {
                "name": form.get("name", ""),
                "email": form.get("email", ""),
                "subjects": form.getlist("subjects"),
            }
        return BookingRequest.model_validate(payload)
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"⚠️ Malformed booking body: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed booking request.")


@router.post("/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book(
    background_tasks: BackgroundTasks,
    req: BookingRequest = Depends(parse_booking_request),
    booking_service: BookingService = Depends(get_booking_service),
):
    # ValidationError / PersistenceError are mapped by the app's exception handlers
    result = await run_in_threadpool(
        booking_service.submit, req.name, req.email, req.subjects, background_tasks
    )
    return BookingResponse(id=result.id, total=result.total)


@router.get("/bookings", response_model=List[BookingRecord])
def list_bookings(booking_service: BookingService = Depends(get_booking_service)):
    return booking_service.list_bookings()


@router.get("/admin", response_class=HTMLResponse)
def admin_table(request: Request, booking_service: BookingService = Depends(get_booking_service)):
    title = f"{request.app.title} - Admin"
    return HTMLResponse(bookings_to_html(booking_service.list_bookings(), title=title))


@router.get("/export")
def export_csv(booking_service: BookingService = Depends(get_booking_service)):
    csv_text = bookings_to_csv(booking_service.list_bookings())
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="bookings.csv"'},
    )


@router.get("/backup")
def download_backup(backup_manager: BackupManager = Depends(get_backup_manager)):
    data = backup_manager.read_backup()
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No backup available yet.")
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{backup_manager.backup_path.name}"'},
    )
