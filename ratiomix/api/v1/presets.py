from fastapi import APIRouter

from ratiomix.schemas.mix import PresetListOut
from ratiomix.services.mix_service import MixService
router = APIRouter()

@router.get("/presets", response_model=PresetListOut)
async def list_presets() -> PresetListOut:
    svc = MixService(None)
    return svc.list_presets()
