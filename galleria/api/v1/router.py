from fastapi import APIRouter
from galleria.api.v1 import tenants, billing, usage, galleries

api_router = APIRouter()

api_router.include_router(tenants.router, prefix="/tenants", tags=["tenants"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(galleries.router, prefix="/galleries", tags=["galleries"])
