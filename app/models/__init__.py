from .flow import FlowProject, FlowData, FlowVariable, FlowSecret, DeploymentStatus, SignatureProvider
from .execution import FlowExecution, FlowMonitoringLog, FlowEndpointAnalytics, ExecutionStatus
from .datastore import TableProject

__all__ = [
    'FlowProject',
    'FlowData',
    'FlowVariable',
    'FlowSecret',
    'DeploymentStatus',
    'SignatureProvider',
    'FlowExecution',
    'FlowMonitoringLog',
    'FlowEndpointAnalytics',
    'ExecutionStatus',
    'TableProject',
]
