"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from gradebook.api.v1.endpoints import auth, grades, imports

api_router = APIRouter()

# Authentication
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

# Bulk imports (admin only)
api_router.include_router(
    imports.router,
    prefix="/imports",
    tags=["Imports"],
)

# Grade entry
api_router.include_router(
    grades.router,
    prefix="/grades",
    tags=["Grades"],
)
