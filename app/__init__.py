from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
import logging
import os
from app.config import Config
from app.database import db, init_db

migrate = Migrate()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Configurar CORS
    # Origins do painel (localhost para dev); os endpoints de flows são públicos
    # e respondem com os próprios headers CORS
    allowed_origins = [
        'http://localhost:5173',  # Vite dev server
        'http://localhost:3000',  # Alternativa
    ]

    env_origins = os.getenv('CORS_ORIGINS', '')
    if env_origins:
        allowed_origins.extend([origin.strip() for origin in env_origins.split(',')])

    CORS(app,
         resources={r"/api/(?!v1/flow-executor).*": {"origins": allowed_origins}},
         supports_credentials=False,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])

    # Inicializar banco de dados
    db.init_app(app)

    # Inicializar Flask-Migrate
    migrate.init_app(app, db)

    init_db(app)

    # Health check endpoint
    from app.routes import health
    app.register_blueprint(health.bp)

    # Endpoints públicos dos flows implantados
    from app.routes import flow_executor
    app.register_blueprint(flow_executor.flow_executor_bp)

    return app
