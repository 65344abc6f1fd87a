from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from billing_backend.health.service import health_dependencies_info
from billing_backend.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/dependencies")
def health_dependencies(request: Request):
    info = health_dependencies_info()
    info["rate_limit"] = rate_limit_health_info(request)
    return JSONResponse(info)
