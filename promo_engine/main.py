# ===================================
# promo_engine/main.py
# ===================================
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from promo_engine.core.config import Settings, settings
from promo_engine.core.database import init_db, check_db_connection

# Import des routes
from promo_engine.api.v1 import promotions

# Configuration des logs
logging.basicConfig(level=settings.log_level, format=settings.log_record_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestionnaire de cycle de vie de l'application"""
    # Démarrage
    logger.info("🚀 Démarrage du moteur de promotions...")

    # Vérifier la connexion DB
    if not check_db_connection():
        logger.error("❌ Impossible de se connecter à la base de données")
        raise RuntimeError("Database connection failed")

    # Initialiser la base de données
    init_db()

    logger.info("✅ Application démarrée avec succès")

    yield

    # Arrêt
    logger.info("⏹️ Arrêt de l'application...")


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Factory pour créer l'application FastAPI

    La documentation interactive est désactivée en production.
    """
    config = app_settings or settings
    docs_enabled = not config.is_production

    app = FastAPI(
        title=config.app_name,
        version=config.app_version,
        openapi_url=f"{config.api_prefix}/openapi.json" if docs_enabled else None,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes API v1
    app.include_router(promotions.router, prefix=f"{config.api_prefix}/promotions", tags=["Promotions"])

    # Route de santé
    @app.get("/health")
    async def health_check():
        """Vérification de la santé de l'API"""
        db_status = "ok" if check_db_connection() else "error"

        return {
            "status": "ok" if db_status == "ok" else "error",
            "version": config.app_version,
            "environment": config.environment,
            "database": db_status,
            "currency": config.currency,
        }

    # Route racine
    @app.get("/")
    async def root():
        return {
            "message": f"Bienvenue sur {config.app_name}",
            "version": config.app_version,
            "docs": "/docs" if docs_enabled else None,
            "health": "/health"
        }

    # Gestion globale des erreurs
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {
                    "code": exc.status_code,
                    "message": exc.detail,
                    "type": "http_error"
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Erreur non gérée: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": {
                    "code": 500,
                    "message": "Erreur interne du serveur",
                    "type": "internal_error"
                }
            },
        )

    return app


# Créer l'instance de l'application
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "promo_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug or settings.is_development,
        log_level=settings.log_level.lower()
    )
