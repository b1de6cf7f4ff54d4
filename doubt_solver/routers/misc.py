from fastapi import APIRouter

from doubt_solver.core.config import settings

router = APIRouter(tags=["Misc"])

@router.get("/health")
def health():
    return {"status": "ok", "env": settings.ENV, "model": settings.GEMINI_MODEL}
