from fastapi import APIRouter

from appointment_desk.api.v1.endpoints import appointments, reminders, slots

api_router = APIRouter()
api_router.include_router(slots.router, prefix="/slots", tags=["slots"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
