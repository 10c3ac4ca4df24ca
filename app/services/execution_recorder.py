"""
ExecutionRecorder Service - Persists execution records, monitoring rows and analytics.

Every write is best-effort: failures roll back the session and are logged,
never raised to the caller.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.database import db
from app.flow_engine.context import ExecutionResult, safe_stringify
from app.flow_engine.graph import node_type
from app.models.execution import (
    ExecutionStatus,
    FlowEndpointAnalytics,
    FlowExecution,
    FlowMonitoringLog,
)

logger = logging.getLogger(__name__)

MASK = '***'

SENSITIVE_KEYS = (
    'password', 'passwd', 'secret', 'token', 'apikey', 'api_key',
    'authorization', 'auth', 'credential', 'signature', 'private_key',
    'card_number', 'cvv', 'ssn',
)

WARNING_MARKERS = ('not implemented', 'not deployed', 'skipped')


class LogLevel:
    """Níveis de log do dashboard de monitoramento"""
    DEBUG = 'debug'
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'


def is_sensitive_key(key: Any) -> bool:
    normalized = str(key).lower().replace('-', '_')
    compact = normalized.replace('_', '')
    return any(marker in normalized or marker.replace('_', '') in compact for marker in SENSITIVE_KEYS)


def mask_sensitive(value: Any) -> Any:
    """Copy of value with the values of sensitive-looking keys masked."""
    if isinstance(value, dict):
        return {
            k: (MASK if is_sensitive_key(k) and v not in (None, '') else mask_sensitive(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [mask_sensitive(item) for item in value]
    return value


def _json_safe(value: Any) -> Any:
    return json.loads(safe_stringify(value)) if value is not None else None


def build_monitoring_rows(
    result: ExecutionResult,
    nodes: List[Dict[str, Any]],
    execution_time_ms: int,
) -> List[Dict[str, Any]]:
    """
    Monitoring rows derived from an execution log.

    - every error entry
    - success entries whose output looks suspicious (not implemented,
      skipped, nested error or success: False)
    - a summary row when the run halted
    """
    node_map = {node.get('id'): node for node in nodes or []}
    rows = []

    def type_of(node_id):
        node = node_map.get(node_id)
        return node_type(node) if node else None

    for entry in result.logs:
        name = entry.node_name or entry.node_id
        if entry.type == 'error':
            rows.append({
                'node_id': entry.node_id,
                'level': LogLevel.ERROR,
                'message': f"[{name}] {entry.message}",
                'metadata': {'nodeType': type_of(entry.node_id), 'timestamp': entry.timestamp, 'data': entry.data},
            })
        elif entry.type == 'success' and isinstance(entry.data, dict) and entry.data:
            message = entry.data.get('message')
            message = message if isinstance(message, str) else ''
            unimplemented = any(marker in message for marker in WARNING_MARKERS)
            nested_error = bool(entry.data.get('error')) or entry.data.get('success') is False
            if unimplemented or nested_error:
                text = (entry.data.get('error') or 'Node returned failure') if nested_error else message
                rows.append({
                    'node_id': entry.node_id,
                    'level': LogLevel.ERROR if nested_error else LogLevel.WARNING,
                    'message': f"[{name}] {text}",
                    'metadata': {'nodeType': type_of(entry.node_id), 'timestamp': entry.timestamp, 'output': entry.data},
                })

    if result.has_error and result.error_message:
        rows.append({
            'node_id': None,
            'level': LogLevel.ERROR,
            'message': f"[Flow Execution] {result.error_message}",
            'metadata': {
                'executionTime': execution_time_ms,
                'partialErrors': [p.to_dict() for p in result.partial_errors],
            },
        })

    return rows


def client_ip(headers: Dict[str, str]) -> str:
    forwarded = headers.get('x-forwarded-for')
    if forwarded:
        first_hop = forwarded.split(',')[0].strip()
        if first_hop:
            return first_hop
    return headers.get('x-real-ip') or '0.0.0.0'


class ExecutionRecorder:
    """
    Helper para persistir o ciclo de vida de uma execução.

    Uso:
        recorder = ExecutionRecorder()
        execution_id = recorder.start(flow_data.id)
        ...
        recorder.finish(execution_id, result, execution_time_ms)
        recorder.write_monitoring_rows(flow_project.id, execution_id, result, nodes, execution_time_ms)
    """

    def start(self, flow_data_id) -> Optional[str]:
        """Create the execution record (status running). Returns its id, or None on failure."""
        execution = FlowExecution(
            flow_data_id=flow_data_id,
            status=ExecutionStatus.RUNNING.value,
            started_at=datetime.utcnow(),
            logs=[],
        )
        db.session.add(execution)
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to create execution record: {e}")
            return None
        return str(execution.id)

    def finish(self, execution_id: Optional[str], result: ExecutionResult, execution_time_ms: int):
        if not execution_id:
            return
        try:
            execution = db.session.get(FlowExecution, _as_uuid(execution_id))
            if execution is None:
                logger.error(f"Execution record {execution_id} disappeared before completion")
                return
            execution.status = (ExecutionStatus.ERROR if result.has_error else ExecutionStatus.SUCCESS).value
            execution.completed_at = datetime.utcnow()
            execution.execution_time_ms = execution_time_ms
            execution.error_message = result.error_message or None
            execution.logs = _json_safe(result.logs_as_dicts())
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Exception updating execution record {execution_id}: {e}")

    def insert_monitoring_log(
        self,
        flow_id: Any,
        execution_id: Any,
        node_id: Optional[str],
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Insert one monitoring row. Returns its id, or None on failure."""
        row = FlowMonitoringLog(
            flow_id=_as_uuid(flow_id),
            execution_id=str(execution_id),
            node_id=node_id,
            level=level or LogLevel.INFO,
            message=message,
            log_metadata=_json_safe(metadata),
        )
        db.session.add(row)
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to insert monitoring log: {e}")
            return None
        return str(row.id)

    def write_monitoring_rows(
        self,
        flow_id: Any,
        execution_id: Optional[str],
        result: ExecutionResult,
        nodes: List[Dict[str, Any]],
        execution_time_ms: int,
    ) -> int:
        """Persist the rows derived from the execution log. Returns the number written."""
        try:
            rows = build_monitoring_rows(result, nodes, execution_time_ms)
            if not rows:
                return 0
            for row in rows:
                db.session.add(FlowMonitoringLog(
                    flow_id=_as_uuid(flow_id),
                    execution_id=execution_id or 'unknown',
                    node_id=row['node_id'],
                    level=row['level'],
                    message=row['message'],
                    log_metadata=_json_safe(row['metadata']),
                ))
            db.session.commit()
            return len(rows)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to write monitoring logs: {e}")
            return 0

    def record_analytics(
        self,
        flow_project_id: Any,
        method: str,
        status_code: int,
        response_time_ms: int,
        headers: Dict[str, str],
        body: Any,
        query: Dict[str, Any],
        request_size_bytes: int,
        response_size_bytes: int,
        error_message: Optional[str] = None,
    ):
        try:
            db.session.add(FlowEndpointAnalytics(
                flow_project_id=_as_uuid(flow_project_id),
                method=method,
                status_code=status_code,
                response_time_ms=response_time_ms,
                ip_address=client_ip(headers),
                user_agent=headers.get('user-agent', ''),
                request_params=_json_safe({
                    'body': mask_sensitive(body),
                    'query': mask_sensitive(query),
                    'headers': list(headers.keys()),
                }),
                request_size_bytes=request_size_bytes,
                response_size_bytes=response_size_bytes,
                error_message=error_message or None,
            ))
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to log analytics: {e}")


def _as_uuid(value: Any):
    if isinstance(value, uuid.UUID) or value is None:
        return value
    return uuid.UUID(str(value))
