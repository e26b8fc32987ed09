# ===================================
# promo_engine/core/database.py
# ===================================
import logging
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from promo_engine.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # SQLite refuse par défaut le partage de connexion entre threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


# Configuration du moteur SQLAlchemy
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.debug,  # Log des requêtes SQL en mode debug
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db() -> Generator:
    """
    Générateur de session de base de données pour l'injection de dépendance FastAPI
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Crée les tables des promotions si elles n'existent pas encore
    """
    # Enregistre les modèles sur Base.metadata
    import promo_engine.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✓ Tables créées")


def check_db_connection() -> bool:
    """
    Vérifie la connexion à la base de données
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Erreur de connexion DB: {e}")
        return False
