from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from appointment_desk.api.deps import get_slot_generator
from appointment_desk.schemas.schemas import (
    ClearSlotsResponse,
    GenerateSlotsRequest,
    GenerateSlotsResponse,
    SlotCreate,
    SlotListResponse,
    SlotResponse,
    SlotUpdate,
)
from appointment_desk.services.slot_generator import SlotGenerator, parse_date

router = APIRouter()


@router.get("/available", response_model=List[SlotResponse])
def get_available_slots(
    date: str = Query(..., description="YYYY-MM-DD"),
    generator: SlotGenerator = Depends(get_slot_generator),
):
    """Bookable slots of a date, ordered by start time"""
    return generator.available_slots(date)


@router.get("/", response_model=SlotListResponse)
def list_slots(
    date: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=100),
    generator: SlotGenerator = Depends(get_slot_generator),
):
    slots, total = generator.list_slots(date, page=page, per_page=per_page)
    return {
        "slots": slots,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": (total + per_page - 1) // per_page,
    }


@router.post("/", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(data: SlotCreate, generator: SlotGenerator = Depends(get_slot_generator)):
    return generator.create_slot(data)


@router.post("/generate", response_model=GenerateSlotsResponse)
def generate_slots(data: GenerateSlotsRequest, generator: SlotGenerator = Depends(get_slot_generator)):
    """
    Generate slots from the business hours.
    - `date`: one date
    - `recurring`: today and the next `days` days
    - neither: today only
    """
    if data.date:
        day = parse_date(data.date)
        return {"generated": generator.generate_for_date(day), "date": day}
    if data.recurring:
        generated = generator.generate_recurring(data.days)
        return {"generated": generated, "days_ahead": data.days}
    today = generator.clock().date()
    return {"generated": generator.generate_for_date(today), "date": today}


@router.post("/clear", response_model=ClearSlotsResponse)
def clear_slots(generator: SlotGenerator = Depends(get_slot_generator)):
    """Delete all slots that have no appointment"""
    return {"deleted": generator.clear_slots()}


@router.put("/{slot_id}", response_model=SlotResponse)
def update_slot(slot_id: int, data: SlotUpdate, generator: SlotGenerator = Depends(get_slot_generator)):
    return generator.update_slot(slot_id, data)


@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(slot_id: int, generator: SlotGenerator = Depends(get_slot_generator)):
    generator.delete_slot(slot_id)
