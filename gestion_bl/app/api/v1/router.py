from fastapi import APIRouter

from gestion_bl.app.api.v1.endpoints.health import router as health_router
from gestion_bl.app.api.v1.endpoints.articles import router as articles_router
from gestion_bl.app.api.v1.endpoints.delivery_notes import router as delivery_notes_router
from gestion_bl.app.api.v1.endpoints.qr_intake import router as qr_router
from gestion_bl.app.api.v1.endpoints.groups import router as groups_router
from gestion_bl.app.api.v1.endpoints.statistics import router as statistics_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(articles_router, tags=["articles"])
router.include_router(delivery_notes_router, tags=["delivery_notes"])
router.include_router(qr_router, tags=["qr"])
router.include_router(groups_router, tags=["groups"])
router.include_router(statistics_router, tags=["statistics"])
