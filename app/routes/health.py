"""
Endpoint de health check geral da API
"""
from flask import Blueprint, jsonify
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import db
from app.services.webhook_signature import list_providers

bp = Blueprint('health', __name__, url_prefix='/api')


@bp.route('/health', methods=['GET'])
def health_check():
    """Healthcheck: API online, banco acessível e providers de assinatura suportados"""
    try:
        db.session.execute(text('SELECT 1'))

        return jsonify({
            'status': 'healthy',
            'message': 'Flow executor is online and database connection is working',
            'signature_providers': list_providers(),
            'timestamp': datetime.utcnow().isoformat()
        }), 200

    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({
            'status': 'unhealthy',
            'message': 'Flow executor is online but database connection failed',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503
