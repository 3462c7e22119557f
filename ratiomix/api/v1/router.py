from fastapi import APIRouter
from ratiomix.api.v1 import mixes, presets, sources

router = APIRouter()
# paths carry their own collection prefix so custom verbs like /mixes:publish can sit beside /mixes
router.include_router(mixes.router, tags=["mixes"])
router.include_router(presets.router, tags=["presets"])
router.include_router(sources.router, tags=["sources"])
