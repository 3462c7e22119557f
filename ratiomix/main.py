from fastapi import FastAPI

from ratiomix.api.v1.router import router as v1_router
from ratiomix.core import settings
from ratiomix.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="ratiomix API", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


@app.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok", "env": settings.ENV}
