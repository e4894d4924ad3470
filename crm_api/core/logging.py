import logging

from crm_api.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = settings.LOG_LEVEL) -> None:
    """Configura o logging da aplicação (chamado uma vez no startup)."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQLAlchemy já loga as queries quando echo=True; evita duplicar
    logging.getLogger("sqlalchemy.engine").propagate = settings.ENVIRONMENT == "development"
