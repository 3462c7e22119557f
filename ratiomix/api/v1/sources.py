import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ratiomix.api.deps import get_catalog_client
from ratiomix.core import get_db
from ratiomix.schemas.source import SourceDetailOut, SourceImportIn, SourceListOut, SourceOut
from ratiomix.services.catalog_client import CatalogAuthError, CatalogClient, CatalogError
from ratiomix.services.source_service import SourceService
router = APIRouter()

@router.post("/sources:import", response_model=SourceOut)
async def import_source(
    payload: SourceImportIn,
    catalog: CatalogClient = Depends(get_catalog_client),
    db: AsyncSession = Depends(get_db),
) -> SourceOut:
    svc = SourceService(db, catalog=catalog)
    try:
        return await svc.import_playlist(catalog_playlist_id=payload.catalog_playlist_id)
    except CatalogAuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except CatalogError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="playlist not found in catalog")
        raise HTTPException(status_code=502, detail=str(e))

@router.get("/sources", response_model=SourceListOut)
async def list_sources(
    db: AsyncSession = Depends(get_db),
) -> SourceListOut:
    svc = SourceService(db)
    return await svc.list_sources()

@router.get("/sources/{source_id}", response_model=SourceDetailOut)
async def get_source(
    source_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> SourceDetailOut:
    svc = SourceService(db)
    try:
        return await svc.get_source(source_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="source not found")
