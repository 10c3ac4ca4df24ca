"""
Secrets Service - Builds the `env` bag of a flow execution

Legacy plain-text FlowVariables are loaded first; encrypted FlowSecrets
(vault) override entries with the same name.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.database import db
from app.models.flow import FlowProject, FlowSecret, FlowVariable
from app.utils.encryption import decrypt_secret, encrypt_secret

logger = logging.getLogger(__name__)

API_KEY_VARIABLE = 'API_KEY'


class SecretsService:
    """
    Usage:
        service = SecretsService(secret_key=app.config['SECRET_KEY'])
        env = service.load_env(flow_project)
    """

    def __init__(self, secret_key: Optional[str] = None):
        self.secret_key = secret_key

    def load_vault_secrets(self, flow_project: FlowProject) -> Dict[str, str]:
        """Decrypted vault secrets; requires an owner on the flow project."""
        if not flow_project.user_id:
            logger.error(f"Flow project {flow_project.id} has no owner, skipping secret loading")
            return {}

        secrets = {}
        rows = FlowSecret.query.filter_by(flow_project_id=flow_project.id).all()
        for row in rows:
            try:
                secrets[row.name] = decrypt_secret(row.encrypted_value, self.secret_key)
            except ValueError as e:
                logger.error(f"Failed to decrypt secret {row.name} of flow {flow_project.id}: {e}")
        return secrets

    def load_legacy_variables(self, flow_project: FlowProject) -> Dict[str, str]:
        rows = FlowVariable.query.filter_by(flow_project_id=flow_project.id).all()
        return {row.name: row.value for row in rows}

    def load_env(self, flow_project: FlowProject) -> Dict[str, str]:
        """Merged env; vault secrets override legacy variables."""
        legacy = {}
        vault = {}
        try:
            legacy = self.load_legacy_variables(flow_project)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load legacy variables: {e}")
        try:
            vault = self.load_vault_secrets(flow_project)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to load vault secrets: {e}")
        return {**legacy, **vault}

    def get_api_key(self, flow_project: FlowProject) -> Optional[str]:
        """Value of the secret API_KEY variable, if configured"""
        variable = FlowVariable.query.filter_by(
            flow_project_id=flow_project.id,
            name=API_KEY_VARIABLE,
            is_secret=True,
        ).first()
        return variable.value if variable and variable.value else None

    def set_secret(self, flow_project: FlowProject, name: str, value: str) -> FlowSecret:
        """Create or replace a vault secret (encrypted at rest)"""
        secret = FlowSecret.query.filter_by(flow_project_id=flow_project.id, name=name).first()
        encrypted = encrypt_secret(value, self.secret_key)
        if secret:
            secret.encrypted_value = encrypted
        else:
            secret = FlowSecret(flow_project_id=flow_project.id, name=name, encrypted_value=encrypted)
            db.session.add(secret)
        db.session.commit()
        return secret
