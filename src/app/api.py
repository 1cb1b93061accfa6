from fastapi import APIRouter

from app.modules.admissions import admin_router, router

api_router = APIRouter()

api_router.include_router(router, prefix="/applications", tags=["Applications"])

api_router.include_router(admin_router, prefix="/admin", tags=["Admin - Admissions"])
