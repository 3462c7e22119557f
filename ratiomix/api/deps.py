from __future__ import annotations

from fastapi import Header, HTTPException

from ratiomix.services.catalog_client import CatalogClient


def bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Authorization must be a bearer token")
    return token.strip()


async def get_catalog_client(authorization: str | None = Header(default=None)) -> CatalogClient:
    return CatalogClient(bearer_token(authorization))
