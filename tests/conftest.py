"""
Pytest fixtures shared by the flow executor tests
"""

import uuid

import httpx
import pytest

from app import create_app
from app.config import TestConfig
from app.database import db
from app.flow_engine.context import ExecutionContext
from app.models.flow import DeploymentStatus, FlowData, FlowProject


@pytest.fixture
def app():
    """Flask app over an in-memory SQLite database"""
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def context():
    """Empty execution context with a POST request"""
    return ExecutionContext(
        request={'method': 'POST', 'headers': {}, 'body': {}, 'query': {}},
        flow_project_id=str(uuid.uuid4()),
        execution_id=str(uuid.uuid4()),
    )


def make_node(node_id, node_type, inputs=None, label=None, **data):
    """Node as stored by the flow editor"""
    node_data = {'type': node_type, 'label': label or node_id, 'inputs': inputs or {}}
    node_data.update(data)
    return {'id': node_id, 'type': node_type, 'data': node_data}


def make_edge(source, target, handle=None):
    edge = {'id': f"{source}->{target}", 'source': source, 'target': target}
    if handle is not None:
        edge['sourceHandle'] = handle
    return edge


def json_transport(handler):
    """httpx.MockTransport whose handler returns (status, json_body)"""
    def respond(request):
        status, body = handler(request)
        return httpx.Response(status, json=body)
    return httpx.MockTransport(respond)


@pytest.fixture
def make_flow(app):
    """Factory: deployed flow project with one published version"""
    def _make_flow(nodes=None, edges=None, slug='orders', published=True, deployed=True, **project_fields):
        project = FlowProject(
            name=f"Flow {slug}",
            endpoint_slug=slug,
            user_id=uuid.uuid4(),
            is_deployed=deployed,
            deployment_status=DeploymentStatus.DEPLOYED.value if deployed else DeploymentStatus.DRAFT.value,
            **project_fields,
        )
        db.session.add(project)
        db.session.flush()
        db.session.add(FlowData(
            flow_project_id=project.id,
            nodes=nodes or [],
            edges=edges or [],
            version=1,
            is_published=published,
        ))
        db.session.commit()
        return project
    return _make_flow
