"""
TableProject - Tabular store used by the data-table node.

Records are kept as a JSON array on the row; each record carries its own `id`.
"""

import uuid
from datetime import datetime
from app.database import db
from app.models.flow import JSONType
from sqlalchemy import Uuid


class TableProject(db.Model):
    """
    Tabela de dados simples (records + schema em JSON).

    Exemplo de schema:
        {"fields": [{"id": "f1", "name": "created", "type": "timestamp"}]}
    """
    __tablename__ = 'table_projects'

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)

    records = db.Column(JSONType, nullable=False, default=list)
    table_schema = db.Column('schema', JSONType)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'records': self.records,
            'schema': self.table_schema,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
