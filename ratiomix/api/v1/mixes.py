from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ratiomix.api.deps import get_catalog_client
from ratiomix.core import get_db
from ratiomix.schemas.mix import MixCreateIn, MixOut, MixPublishIn, MixPublishOut
from ratiomix.services.catalog_client import CatalogAuthError, CatalogClient, CatalogError
from ratiomix.services.mix_service import MixService
router = APIRouter()

@router.post("/mixes", response_model=MixOut)
async def create_mix(
    payload: MixCreateIn,
    db: AsyncSession = Depends(get_db),
) -> MixOut:
    svc = MixService(db)
    try:
        return await svc.create_mix(payload)
    except KeyError:
        raise HTTPException(status_code=404, detail="source not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/mixes:publish", response_model=MixPublishOut)
async def publish_mix(
    payload: MixPublishIn,
    catalog: CatalogClient = Depends(get_catalog_client),
) -> MixPublishOut:
    svc = MixService(None, catalog=catalog)
    try:
        return await svc.publish_mix(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CatalogAuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except CatalogError as e:
        raise HTTPException(status_code=502, detail=str(e))
