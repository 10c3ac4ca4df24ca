"""
Flow Execution Service - Handles one inbound trigger call of a deployed flow

Pipeline:
    flow by slug -> deployed check -> provider signature -> internal signature
    -> API key -> latest published version -> execution record -> env secrets
    -> graph run -> execution update / monitoring rows / analytics -> response
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from app.flow_engine.context import ExecutionContext, ExecutionResult, safe_stringify
from app.flow_engine.executor import FlowExecutor
from app.flow_engine.node_executor import NodeExecutor
from app.flow_engine.nodes import NodeServices
from app.models.flow import FlowData, FlowProject
from app.services.data_table_store import DataTableStore
from app.services.execution_recorder import ExecutionRecorder
from app.services.proxy_client import ProxyClient
from app.services.secrets_service import SecretsService
from app.services.webhook_signature import (
    SignatureConfig,
    verify_hmac_signature,
    verify_provider_signature,
)

logger = logging.getLogger(__name__)

INTERNAL_SIGNATURE_HEADER = 'x-webhook-signature'
API_KEY_HEADER = 'x-api-key'


class FlowTriggerError(Exception):
    """Inbound call rejected before any node ran"""

    def __init__(self, status_code: int, payload: Dict[str, Any]):
        self.status_code = status_code
        self.payload = payload
        super().__init__(payload.get('error', 'Flow trigger rejected'))


@dataclass
class FlowResponse:
    """HTTP response computed for a trigger call"""
    status_code: int
    body: Any
    content_type: str = 'application/json'
    headers: Dict[str, str] = field(default_factory=dict)
    execution_id: Optional[str] = None
    result: Optional[ExecutionResult] = None

    def render_body(self) -> str:
        if isinstance(self.body, str) and 'json' not in self.content_type.lower():
            return self.body
        return safe_stringify(self.body)


def parse_request_body(raw_body: bytes) -> Any:
    """JSON body, falling back to {raw: text}"""
    text = raw_body.decode('utf-8', errors='replace') if raw_body else ''
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {'raw': text}


class FlowExecutionService:
    """
    Usage:
        service = FlowExecutionService(current_app.config)
        response = service.handle(slug, method, headers, raw_body, query)
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        recorder: Optional[ExecutionRecorder] = None,
        secrets: Optional[SecretsService] = None,
        table_store: Optional[DataTableStore] = None,
    ):
        self.config = config
        self.recorder = recorder or ExecutionRecorder()
        self.secrets = secrets or SecretsService(secret_key=config.get('SECRET_KEY'))
        self.services = NodeServices(
            proxy_client=ProxyClient.from_config(config, transport=proxy_transport),
            table_store=table_store or DataTableStore(),
            monitoring_sink=self.recorder,
            http_transport=http_transport,
            http_timeout=config.get('HTTP_REQUEST_TIMEOUT_SECONDS', 30.0),
        )

    def _executor(self) -> FlowExecutor:
        node_executor = NodeExecutor(
            services=self.services,
            node_timeout=self.config.get('NODE_TIMEOUT_SECONDS', 30.0),
        )
        return FlowExecutor(node_executor, flow_timeout=self.config.get('FLOW_TIMEOUT_SECONDS', 120.0))

    # === Trigger checks ===

    def load_flow_project(self, endpoint_slug: str) -> FlowProject:
        flow_project = FlowProject.query.filter_by(endpoint_slug=endpoint_slug).first()
        if flow_project is None:
            raise FlowTriggerError(404, {'error': 'Flow not found'})
        if not flow_project.is_live:
            raise FlowTriggerError(503, {'error': 'Flow is not deployed'})
        return flow_project

    def verify_signatures(self, flow_project: FlowProject, raw_body: bytes, headers: Dict[str, str]):
        provider = flow_project.signature_provider
        if provider and provider != 'none':
            result = verify_provider_signature(
                provider,
                raw_body,
                headers,
                SignatureConfig(
                    secret=flow_project.external_webhook_secret or '',
                    header_name=flow_project.signature_header_name,
                    algorithm=flow_project.signature_algorithm,
                    timestamp_tolerance=(
                        flow_project.signature_timestamp_tolerance
                        or self.config.get('DEFAULT_SIGNATURE_TOLERANCE_SECONDS', 300)
                    ),
                    require_timestamp=bool(flow_project.signature_require_timestamp),
                ),
            )
            if not result.valid and not result.skipped:
                logger.warning(f"Signature verification failed for flow {flow_project.id} ({provider})")
                raise FlowTriggerError(401, {
                    'error': 'Signature verification failed',
                    'details': result.error,
                    'provider': provider,
                })

        internal_signature = headers.get(INTERNAL_SIGNATURE_HEADER)
        if flow_project.webhook_secret and internal_signature:
            if not verify_hmac_signature(raw_body, internal_signature, flow_project.webhook_secret):
                logger.warning(f"Invalid internal webhook signature for flow {flow_project.id}")
                raise FlowTriggerError(401, {'error': 'Invalid internal webhook signature'})

    def verify_api_key(self, flow_project: FlowProject, headers: Dict[str, str]):
        expected = self.secrets.get_api_key(flow_project)
        if not expected:
            return
        provided = headers.get(API_KEY_HEADER)
        if not provided:
            raise FlowTriggerError(401, {'error': 'Missing API key', 'details': 'Include X-API-Key header'})
        if provided != expected:
            raise FlowTriggerError(401, {'error': 'Invalid API key'})

    def load_published_version(self, flow_project: FlowProject) -> FlowData:
        flow_data = (
            FlowData.query
            .filter_by(flow_project_id=flow_project.id, is_published=True)
            .order_by(FlowData.version.desc())
            .first()
        )
        if flow_data is None:
            raise FlowTriggerError(404, {'error': 'No published flow version found'})
        return flow_data

    # === Execution ===

    def handle(
        self,
        endpoint_slug: str,
        method: str,
        headers: Mapping[str, str],
        raw_body: bytes,
        query: Optional[Dict[str, Any]] = None,
    ) -> FlowResponse:
        """
        Run the flow bound to endpoint_slug for one inbound call.

        Raises:
            FlowTriggerError: Rejected before execution (404/503/401)
        """
        started = time.monotonic()
        headers = {k.lower(): v for k, v in headers.items()}
        query = dict(query or {})
        raw_body = raw_body or b''

        flow_project = self.load_flow_project(endpoint_slug)
        self.verify_signatures(flow_project, raw_body, headers)
        self.verify_api_key(flow_project, headers)
        request_body = parse_request_body(raw_body)
        flow_data = self.load_published_version(flow_project)

        nodes = flow_data.nodes or []
        edges = flow_data.edges or []

        execution_id = self.recorder.start(flow_data.id)
        context = ExecutionContext(
            request={'method': method, 'headers': headers, 'body': request_body, 'query': query},
            env=self.secrets.load_env(flow_project),
            variables={},
            flow_project_id=str(flow_project.id),
            execution_id=execution_id,
        )

        logger.info(f"Executing flow {flow_project.name} (version {flow_data.version}) via {method}")
        result = asyncio.run(self._executor().run(nodes, edges, context))
        execution_time = int((time.monotonic() - started) * 1000)

        self.recorder.finish(execution_id, result, execution_time)
        self.recorder.write_monitoring_rows(flow_project.id, execution_id, result, nodes, execution_time)

        response = self.build_response(result, execution_id, execution_time)

        self.recorder.record_analytics(
            flow_project_id=flow_project.id,
            method=method,
            status_code=response.status_code,
            response_time_ms=execution_time,
            headers=headers,
            body=request_body,
            query=query,
            request_size_bytes=len(raw_body),
            response_size_bytes=len(response.render_body().encode('utf-8')),
            error_message=result.error_message,
        )
        return response

    def build_response(self, result: ExecutionResult, execution_id: Optional[str], execution_time: int) -> FlowResponse:
        status_code = 500 if result.has_error else 200
        headers = {
            'X-Execution-Id': execution_id or '',
            'X-Execution-Time': str(execution_time),
        }

        if result.has_response_node:
            output = result.final_output or {}
            body = output.get('body')
            custom_headers = output.get('headers') if isinstance(output.get('headers'), dict) else {}
            return FlowResponse(
                status_code=_as_status(output.get('statusCode')) or status_code,
                body=body if body not in (None, '') else output,
                content_type=output.get('contentType') or 'application/json',
                headers={**{str(k): str(v) for k, v in custom_headers.items()}, **headers},
                execution_id=execution_id,
                result=result,
            )

        partial_errors = [p.to_dict() for p in result.partial_errors]
        if result.has_error:
            message = result.error_message
        elif partial_errors:
            message = f"Flow completed with {len(partial_errors)} node error(s)"
        else:
            message = 'Flow executed successfully'

        body = {
            'success': not result.has_error,
            'message': message,
            'executionId': execution_id,
            'executionTime': execution_time,
        }
        if partial_errors:
            body['partialErrors'] = partial_errors

        return FlowResponse(status_code=status_code, body=body, headers=headers, execution_id=execution_id, result=result)


def _as_status(value: Any) -> Optional[int]:
    try:
        code = int(value)
    except (TypeError, ValueError):
        return None
    return code if 100 <= code <= 599 else None
