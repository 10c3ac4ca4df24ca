"""
Execution Models - Execution record, monitoring logs and endpoint analytics
"""
from app.database import db
from app.models.flow import JSONType
from sqlalchemy import Uuid
from datetime import datetime
import uuid
from enum import Enum


class ExecutionStatus(str, Enum):
    """Flow execution status"""
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class FlowExecution(db.Model):
    """
    Flow Execution - One run of a published flow version.
    `logs` holds the ordered execution log entries, attached at the end of the run.
    """
    __tablename__ = 'flow_executions'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    flow_data_id = db.Column(Uuid, db.ForeignKey('flow_data.id', ondelete='CASCADE'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=ExecutionStatus.RUNNING.value)
    started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime)
    execution_time_ms = db.Column(db.Integer)
    error_message = db.Column(db.Text)
    logs = db.Column(JSONType, nullable=False, default=list)

    __table_args__ = (
        db.Index('idx_flow_executions_flow_data_id', 'flow_data_id'),
        db.Index('idx_flow_executions_status', 'status'),
    )

    def to_dict(self):
        return {
            'id': str(self.id),
            'flow_data_id': str(self.flow_data_id),
            'status': self.status,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'execution_time_ms': self.execution_time_ms,
            'error_message': self.error_message,
            'logs': self.logs,
        }


class FlowMonitoringLog(db.Model):
    """
    Flow Monitoring Log - Structured rows shown on the monitoring dashboard.
    Written by the logger node and derived from error/warning execution logs.
    """
    __tablename__ = 'flow_monitoring_logs'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    flow_id = db.Column(Uuid, nullable=False)
    execution_id = db.Column(db.String(64), nullable=False)
    node_id = db.Column(db.String(255))
    level = db.Column(db.String(20), nullable=False)  # info, warning, error, debug
    message = db.Column(db.Text, nullable=False)
    # "metadata" é reservado pelo declarative
    log_metadata = db.Column('metadata', JSONType)

    __table_args__ = (
        db.Index('idx_flow_monitoring_logs_flow_id', 'flow_id'),
        db.Index('idx_flow_monitoring_logs_execution_id', 'execution_id'),
        db.Index('idx_flow_monitoring_logs_level', 'level'),
    )

    def to_dict(self):
        return {
            'id': str(self.id),
            'flow_id': str(self.flow_id),
            'execution_id': self.execution_id,
            'node_id': self.node_id,
            'level': self.level,
            'message': self.message,
            'metadata': self.log_metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class FlowEndpointAnalytics(db.Model):
    """
    Flow Endpoint Analytics - One row per inbound trigger call
    """
    __tablename__ = 'flow_endpoint_analytics'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    flow_project_id = db.Column(Uuid, db.ForeignKey('flow_projects.id', ondelete='CASCADE'), nullable=False)
    method = db.Column(db.String(10), nullable=False)
    status_code = db.Column(db.Integer, nullable=False)
    response_time_ms = db.Column(db.Integer)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.Text)
    request_params = db.Column(JSONType)
    request_size_bytes = db.Column(db.Integer)
    response_size_bytes = db.Column(db.Integer)
    error_message = db.Column(db.Text)

    __table_args__ = (
        db.Index('idx_flow_endpoint_analytics_project_id', 'flow_project_id'),
        db.Index('idx_flow_endpoint_analytics_created_at', 'created_at'),
    )
