from fastapi import APIRouter
from app.modules.directory.router import router as directory_router
from app.modules.availability.router import router as availability_router
from app.modules.bookings.router import router as bookings_router

api_router = APIRouter()
api_router.include_router(directory_router, tags=["directory"])
api_router.include_router(availability_router, tags=["availability"])
api_router.include_router(bookings_router, tags=["bookings"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
