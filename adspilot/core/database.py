# adspilot/core/database.py
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, Optional

Base = declarative_base()


def utc_now() -> datetime:
    """Heure UTC naïve, telle que stockée dans les colonnes DateTime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseManager:
    """Singleton pour la gestion de la base de données"""
    _instance = None
    _engine = None
    _session_factory = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
        return cls._instance

    def _initialize_database(self, database_url: Optional[str] = None):
        """Initialise la connexion à la base de données"""
        database_url = database_url or self._get_database_url()

        engine_kwargs = {"pool_pre_ping": True, "echo": False}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_recycle"] = 300

        self._engine = create_engine(database_url, **engine_kwargs)

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine
        )

    def _get_database_url(self) -> str:
        """Construit l'URL de la base de données"""
        from adspilot.config import settings

        return settings.database_url

    def configure(self, database_url: str):
        """Reconfigure le moteur (tests, scripts)"""
        if self._engine is not None:
            self._engine.dispose()
        self._initialize_database(database_url)

    @property
    def engine(self):
        if self._engine is None:
            self._initialize_database()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._initialize_database()
        return self._session_factory

    def get_session(self) -> Session:
        """Retourne une nouvelle session de base de données"""
        return self.session_factory()

    def create_tables(self):
        """Crée toutes les tables"""
        import adspilot.models  # noqa: F401  enregistre les modèles

        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self):
        """Supprime toutes les tables"""
        Base.metadata.drop_all(bind=self.engine)


# Instance singleton
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """Générateur de session pour l'injection de dépendances FastAPI"""
    db = db_manager.get_session()
    try:
        yield db
    finally:
        db.close()
