"""
Tests for execution records, monitoring rows and analytics masking
"""

import uuid

from app.database import db
from app.flow_engine.context import ExecutionContext, ExecutionLogEntry, ExecutionResult, PartialError
from app.models.execution import ExecutionStatus, FlowEndpointAnalytics, FlowExecution, FlowMonitoringLog
from app.services.execution_recorder import (
    MASK,
    ExecutionRecorder,
    LogLevel,
    build_monitoring_rows,
    client_ip,
    is_sensitive_key,
    mask_sensitive,
)
from conftest import make_node


def result_with(logs, has_error=False, error_message='', partial_errors=None):
    return ExecutionResult(
        context=ExecutionContext(),
        logs=logs,
        has_error=has_error,
        error_message=error_message,
        partial_errors=partial_errors or [],
    )


class TestMonitoringRows:
    """Test rows derived from the execution log"""

    NODES = [make_node('h', 'http-request', label='Fetch'), make_node('p', 'gmail-send', label='Mail')]

    def test_clean_run_has_no_rows(self):
        result = result_with([
            ExecutionLogEntry('h', 'Fetch', 'info', 'Executing Fetch'),
            ExecutionLogEntry('h', 'Fetch', 'success', 'Execution completed', data={'status': 200}),
        ])
        assert build_monitoring_rows(result, self.NODES, 10) == []

    def test_error_entry_and_summary(self):
        result = result_with(
            [ExecutionLogEntry('h', 'Fetch', 'error', 'HTTP Request failed: timeout')],
            has_error=True,
            error_message='HTTP Request failed: timeout',
        )
        rows = build_monitoring_rows(result, self.NODES, 42)

        assert rows[0]['level'] == LogLevel.ERROR
        assert rows[0]['message'] == '[Fetch] HTTP Request failed: timeout'
        assert rows[0]['metadata']['nodeType'] == 'http-request'
        assert rows[1]['node_id'] is None
        assert rows[1]['message'] == '[Flow Execution] HTTP Request failed: timeout'
        assert rows[1]['metadata']['executionTime'] == 42

    def test_suspicious_success_outputs(self):
        result = result_with([
            ExecutionLogEntry('p', 'Mail', 'success', 'Execution completed', data={'message': 'Step skipped'}),
            ExecutionLogEntry('h', 'Fetch', 'success', 'Execution completed', data={'error': 'partial', 'ok': 1}),
        ])
        rows = build_monitoring_rows(result, self.NODES, 1)

        assert [(row['level'], row['message']) for row in rows] == [
            (LogLevel.WARNING, '[Mail] Step skipped'),
            (LogLevel.ERROR, '[Fetch] partial'),
        ]

    def test_summary_carries_partial_errors(self):
        result = result_with(
            [],
            has_error=True,
            error_message='boom',
            partial_errors=[PartialError('h', 'Fetch', 'timeout')],
        )
        rows = build_monitoring_rows(result, self.NODES, 5)

        assert rows[-1]['metadata']['partialErrors'] == [{'nodeId': 'h', 'nodeName': 'Fetch', 'error': 'timeout'}]


class TestMasking:

    def test_sensitive_keys(self):
        for key in ('password', 'API-Key', 'apiKey', 'x_auth_token', 'clientSecret', 'card_number'):
            assert is_sensitive_key(key), key
        for key in ('amount', 'email', 'name'):
            assert not is_sensitive_key(key), key

    def test_mask_nested(self):
        value = {'user': {'email': 'a@b.c', 'password': 'hunter2'}, 'items': [{'token': 't'}], 'secret': ''}
        assert mask_sensitive(value) == {
            'user': {'email': 'a@b.c', 'password': MASK},
            'items': [{'token': MASK}],
            'secret': '',
        }

    def test_client_ip(self):
        assert client_ip({'x-forwarded-for': '1.2.3.4, 10.0.0.1'}) == '1.2.3.4'
        assert client_ip({'x-real-ip': '5.6.7.8'}) == '5.6.7.8'
        assert client_ip({}) == '0.0.0.0'


class TestExecutionRecorder:
    """Test persistence against the test database"""

    def test_start_and_finish(self, app, make_flow):
        project = make_flow()
        recorder = ExecutionRecorder()
        execution_id = recorder.start(project.versions[0].id)
        assert execution_id

        result = result_with([ExecutionLogEntry('a', 'A', 'info', 'Executing A')], has_error=True, error_message='x')
        recorder.finish(execution_id, result, 15)

        execution = db.session.get(FlowExecution, uuid.UUID(execution_id))
        assert execution.status == ExecutionStatus.ERROR.value
        assert execution.execution_time_ms == 15
        assert execution.error_message == 'x'
        assert execution.logs[0]['message'] == 'Executing A'
        assert execution.completed_at is not None

    def test_finish_without_id_is_noop(self, app):
        ExecutionRecorder().finish(None, result_with([]), 1)
        assert FlowExecution.query.count() == 0

    def test_insert_monitoring_log(self, app):
        flow_id = uuid.uuid4()
        log_id = ExecutionRecorder().insert_monitoring_log(
            flow_id=str(flow_id), execution_id='exec-1', node_id='l', level='warn', message='hi', metadata={'a': 1}
        )
        row = db.session.get(FlowMonitoringLog, uuid.UUID(log_id))
        assert row.flow_id == flow_id
        assert row.log_metadata == {'a': 1}

    def test_record_analytics_masks_body(self, app, make_flow):
        project = make_flow()
        ExecutionRecorder().record_analytics(
            flow_project_id=project.id,
            method='POST',
            status_code=200,
            response_time_ms=12,
            headers={'user-agent': 'curl', 'x-forwarded-for': '9.9.9.9'},
            body={'password': 'p', 'amount': 1},
            query={},
            request_size_bytes=10,
            response_size_bytes=20,
        )
        row = FlowEndpointAnalytics.query.one()
        assert row.ip_address == '9.9.9.9'
        assert row.user_agent == 'curl'
        assert row.request_params['body'] == {'password': MASK, 'amount': 1}
        assert row.request_params['headers'] == ['user-agent', 'x-forwarded-for']
