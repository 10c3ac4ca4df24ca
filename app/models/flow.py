"""
Flow Models - Deployed flow projects, their published graph versions and variables
"""
from app.database import db
from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
import uuid
from enum import Enum

# JSONB no Postgres, JSON genérico nos demais dialetos (SQLite nos testes)
JSONType = JSON().with_variant(JSONB(), 'postgresql')


class DeploymentStatus(str, Enum):
    """Deployment status of a flow project"""
    DRAFT = "draft"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    FAILED = "failed"


class SignatureProvider(str, Enum):
    """External webhook signature providers"""
    NONE = "none"
    GENERIC = "generic"
    CUSTOM = "custom"
    GITHUB = "github"
    SHOPIFY = "shopify"
    WEBFLOW = "webflow"
    STRIPE = "stripe"


class FlowProject(db.Model):
    """
    Flow Project - An externally reachable flow endpoint.

    Holds deployment state and the webhook authentication settings
    (internal HMAC secret and external provider signature configuration).
    """
    __tablename__ = 'flow_projects'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Identification
    name = db.Column(db.String(255), nullable=False)
    endpoint_slug = db.Column(db.String(255), nullable=False, unique=True)
    user_id = db.Column(Uuid)

    # Deployment
    is_deployed = db.Column(db.Boolean, nullable=False, default=False)
    deployment_status = db.Column(db.String(50), nullable=False, default=DeploymentStatus.DRAFT.value)

    # Internal webhook signature (x-webhook-signature)
    webhook_secret = db.Column(db.String(255))

    # External provider signature
    signature_provider = db.Column(db.String(50), default=SignatureProvider.NONE.value)
    signature_header_name = db.Column(db.String(255))
    signature_algorithm = db.Column(db.String(50))
    external_webhook_secret = db.Column(db.String(512))
    signature_timestamp_tolerance = db.Column(db.Integer)
    signature_require_timestamp = db.Column(db.Boolean, nullable=False, default=False)

    # Relationships
    versions = db.relationship('FlowData', back_populates='flow_project', cascade='all, delete-orphan')
    variables = db.relationship('FlowVariable', back_populates='flow_project', cascade='all, delete-orphan')
    secrets = db.relationship('FlowSecret', back_populates='flow_project', cascade='all, delete-orphan')

    __table_args__ = (
        db.Index('idx_flow_projects_endpoint_slug', 'endpoint_slug'),
    )

    @property
    def is_live(self):
        return bool(self.is_deployed) and self.deployment_status == DeploymentStatus.DEPLOYED.value

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'endpoint_slug': self.endpoint_slug,
            'is_deployed': self.is_deployed,
            'deployment_status': self.deployment_status,
            'signature_provider': self.signature_provider,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class FlowData(db.Model):
    """
    Flow Data - Versioned graph (nodes + edges) of a flow project.
    Only published versions are executed; the highest published version wins.
    """
    __tablename__ = 'flow_data'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    flow_project_id = db.Column(Uuid, db.ForeignKey('flow_projects.id', ondelete='CASCADE'), nullable=False)

    nodes = db.Column(JSONType, nullable=False, default=list)
    edges = db.Column(JSONType, nullable=False, default=list)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_published = db.Column(db.Boolean, nullable=False, default=False)

    flow_project = db.relationship('FlowProject', back_populates='versions')

    __table_args__ = (
        db.Index('idx_flow_data_project_published', 'flow_project_id', 'is_published'),
    )

    def to_dict(self):
        return {
            'id': str(self.id),
            'flow_project_id': str(self.flow_project_id),
            'nodes': self.nodes,
            'edges': self.edges,
            'version': self.version,
            'is_published': self.is_published,
        }


class FlowVariable(db.Model):
    """
    Flow Variable - Legacy plain-text variable.
    The secret variable named API_KEY protects the endpoint.
    """
    __tablename__ = 'flow_variables'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    flow_project_id = db.Column(Uuid, db.ForeignKey('flow_projects.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    value = db.Column(db.Text)
    is_secret = db.Column(db.Boolean, nullable=False, default=False)

    flow_project = db.relationship('FlowProject', back_populates='variables')

    __table_args__ = (
        db.UniqueConstraint('flow_project_id', 'name', name='uq_flow_variables_project_name'),
    )


class FlowSecret(db.Model):
    """
    Flow Secret - Vault entry, stored encrypted (Fernet).
    Overrides a legacy FlowVariable with the same name.
    """
    __tablename__ = 'flow_secrets'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    flow_project_id = db.Column(Uuid, db.ForeignKey('flow_projects.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    encrypted_value = db.Column(db.Text, nullable=False)

    flow_project = db.relationship('FlowProject', back_populates='secrets')

    __table_args__ = (
        db.UniqueConstraint('flow_project_id', 'name', name='uq_flow_secrets_project_name'),
    )
