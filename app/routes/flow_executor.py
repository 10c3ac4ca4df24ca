"""
Rotas públicas de execução de flows - um endpoint por flow implantado (endpoint_slug).
"""
from flask import Blueprint, Response, current_app, jsonify, request
import logging

from app.services.flow_execution_service import FlowExecutionService, FlowTriggerError

logger = logging.getLogger(__name__)
flow_executor_bp = Blueprint('flow_executor', __name__, url_prefix='/api/v1/flow-executor')

METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': (
        'authorization, x-client-info, apikey, content-type, x-api-key, '
        'x-webhook-signature, x-webflow-signature, x-webflow-timestamp, '
        'stripe-signature, x-hub-signature-256, x-shopify-hmac-sha256'
    ),
    'Access-Control-Allow-Methods': ', '.join(METHODS),
    'Access-Control-Expose-Headers': 'X-Execution-Id, X-Execution-Time',
}


def _json_response(payload, status_code):
    response = jsonify(payload)
    response.status_code = status_code
    response.headers.update(CORS_HEADERS)
    return response


def get_execution_service() -> FlowExecutionService:
    """Serviço de execução; testes podem registrar um em app.extensions['flow_execution_service']"""
    service = current_app.extensions.get('flow_execution_service')
    if service is None:
        service = FlowExecutionService(current_app.config)
    return service


@flow_executor_bp.route('', methods=METHODS)
@flow_executor_bp.route('/', methods=METHODS)
def missing_slug():
    if request.method == 'OPTIONS':
        return Response(status=204, headers=CORS_HEADERS)
    return _json_response({'error': 'Missing endpoint slug'}, 400)


@flow_executor_bp.route('/<endpoint_slug>', methods=METHODS)
def execute_flow(endpoint_slug):
    """
    Executa o flow publicado associado ao endpoint_slug.

    Respostas:
        404 Flow not found / No published flow version found
        503 Flow is not deployed
        401 assinatura ou API key inválida
        500 erro inesperado ({"error": mensagem})
    """
    if request.method == 'OPTIONS':
        return Response(status=204, headers=CORS_HEADERS)

    try:
        service = get_execution_service()
        result = service.handle(
            endpoint_slug=endpoint_slug,
            method=request.method,
            headers=dict(request.headers),
            raw_body=request.get_data(cache=True),
            query=request.args.to_dict(),
        )
    except FlowTriggerError as e:
        return _json_response(e.payload, e.status_code)
    except Exception as e:
        logger.exception(f"Flow executor error on {endpoint_slug}: {e}")
        return _json_response({'error': str(e)}, 500)

    content_type = result.content_type or 'application/json'
    response = Response(result.render_body(), status=result.status_code, content_type=content_type)
    response.headers.update(CORS_HEADERS)
    response.headers.update(result.headers)
    return response
