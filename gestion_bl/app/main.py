import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gestion_bl.app.api.v1.router import router as v1_router
from gestion_bl.app.core.config import get_settings
from gestion_bl.app.core.logging_config import setup_logging
from gestion_bl.services.errors import DataUnavailable

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Gestion BL", version="0.1.0")
app.include_router(v1_router, prefix=settings.api_prefix)


@app.exception_handler(DataUnavailable)
async def data_unavailable_handler(request: Request, exc: DataUnavailable):
    # Pas de retry automatique : c'est au client de relancer
    logger.error("%s %s -> %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Données momentanément indisponibles, veuillez réessayer."},
    )
