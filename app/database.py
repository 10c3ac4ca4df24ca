from flask_sqlalchemy import SQLAlchemy
import logging

logger = logging.getLogger(__name__)

db = SQLAlchemy()


def init_db(app):
    """
    Registra os models no metadata e cria tabelas ausentes quando configurado.

    Em produção as tabelas são gerenciadas pelo Flask-Migrate (Alembic);
    SQLALCHEMY_CREATE_ALL existe para testes e ambientes locais.
    """
    from app import models  # noqa: F401

    if app.config.get('SQLALCHEMY_CREATE_ALL'):
        with app.app_context():
            db.create_all()
            logger.info('Tabelas criadas via create_all')
