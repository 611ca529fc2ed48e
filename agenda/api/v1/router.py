"""
Router principal de la API v1.
Agrupa todos los sub-routers de la versión 1.
"""

from fastapi import APIRouter

from agenda.api.v1.appointments import router as appointments_router
from agenda.api.v1.availability import router as availability_router
from agenda.api.v1.slots import router as slots_router

api_v1_router = APIRouter()

api_v1_router.include_router(
    availability_router,
    prefix="/availability",
    tags=["Disponibilidad"],
)

api_v1_router.include_router(
    slots_router,
    prefix="/slots",
    tags=["Slots"],
)

api_v1_router.include_router(
    appointments_router,
    prefix="/appointments",
    tags=["Citas"],
)
