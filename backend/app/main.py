"""
Point d'entrée principal de l'API de présence (apprenants, coachs, restauration).
Démarrage : uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

import app.models  # noqa: F401 : enregistre tous les modèles dans Base.metadata avant les routers
from app.config import settings
from app.database import Base, engine
from app.exceptions import PersistenceUnavailable
from app.routers import attendance, coaches, learners, meals, referentials

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : création des tables si demandée."""
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Tables vérifiées / créées.")
    yield


app = FastAPI(
    title="Présence API",
    description="API de gestion des présences par QR code (apprenants, coachs, restauration)",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(attendance.router)
app.include_router(meals.router)
app.include_router(learners.router)
app.include_router(coaches.router)
app.include_router(referentials.router)


@app.exception_handler(PersistenceUnavailable)
async def persistence_unavailable_handler(request: Request, exc: PersistenceUnavailable) -> JSONResponse:
    """Erreur transitoire : le client affiche un bandeau et l'utilisateur réessaie."""
    logger.warning("Base indisponible (%s) : %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": exc.message, "retryable": True})


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Erreur de connexion BDD (%s) : %s", request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": PersistenceUnavailable.default_message, "retryable": True},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Présence API", "version": "0.1.0"}
