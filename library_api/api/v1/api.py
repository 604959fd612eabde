# library_api/api/v1/api.py
from fastapi import APIRouter

from library_api.api.v1.endpoints import auth, borrowings

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(borrowings.router, prefix="/borrowings")
