from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from appointment_desk.api.deps import get_booking_ledger
from appointment_desk.schemas.schemas import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
)
from appointment_desk.services.booking_ledger import BookingLedger

router = APIRouter()


@router.post("/", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    appointment_data: AppointmentCreate,
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    """Book a place on a slot for a registered user or a guest.

    Returns 409 `slot_unavailable` when the slot is full or closed, so the
    client can offer another slot.
    """
    return ledger.book(
        appointment_data.appointment_slot_id,
        appointment_data.subject,
        service_id=appointment_data.service_id,
        order_id=appointment_data.order_id,
        notes=appointment_data.notes,
    )


@router.get("/", response_model=AppointmentListResponse)
def get_appointments(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    date: Optional[str] = None,
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    """Get appointments with pagination, filtered by status and slot date"""
    appointments, total = ledger.list_appointments(status_filter, date, page=page, per_page=per_page)
    return {
        "appointments": appointments,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": (total + per_page - 1) // per_page,
    }


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(appointment_id: int, ledger: BookingLedger = Depends(get_booking_ledger)):
    return ledger.get(appointment_id)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(appointment_id: int, ledger: BookingLedger = Depends(get_booking_ledger)):
    return ledger.confirm(appointment_id)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    ledger: BookingLedger = Depends(get_booking_ledger),
):
    """Cancel an appointment and release its place on the slot"""
    return ledger.cancel(appointment_id, reason=data.reason if data else None)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(appointment_id: int, ledger: BookingLedger = Depends(get_booking_ledger)):
    return ledger.complete(appointment_id)
