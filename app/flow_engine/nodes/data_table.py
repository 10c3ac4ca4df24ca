"""
data-table node - CRUD over the JSON records of a table project

Operations: create, get, update, delete.
Record fields can be given as `data` (JSON) or as individual `fieldMap.<name>`
inputs, which take precedence.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.nodes.base import NodeServices, parse_json_input

logger = logging.getLogger(__name__)

FIELD_MAP_PREFIX = 'fieldMap.'


def compose_record_data(inputs: Dict[str, Any]) -> Dict[str, Any]:
    field_map = {
        key[len(FIELD_MAP_PREFIX):]: value
        for key, value in inputs.items()
        if key.startswith(FIELD_MAP_PREFIX) and value is not None and value != ''
    }
    if field_map:
        return field_map
    data = parse_json_input(inputs.get('data'), default={})
    return data if isinstance(data, dict) else {}


def _fill_timestamps(record: Dict[str, Any], schema: Any):
    fields = schema.get('fields') if isinstance(schema, dict) else None
    if not isinstance(fields, list):
        return
    now = datetime.now(timezone.utc).isoformat()
    for field in fields:
        if not isinstance(field, dict) or field.get('type') != 'timestamp':
            continue
        name = field.get('name')
        key = field.get('id') or name
        if name and not record.get(key) and not record.get(name):
            record[name] = now


def _matches(record: Dict[str, Any], criterion: Dict[str, Any]) -> bool:
    value = record.get(criterion.get('field'))
    operator = criterion.get('operator')
    if operator == 'equals':
        return value == criterion.get('value')
    elif operator == 'notEquals':
        return value != criterion.get('value')
    elif operator == 'contains':
        return str(criterion.get('value')).lower() in str(value or '').lower()
    return True


def query_records(records: List[Dict[str, Any]], inputs: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Apply filter, sort and limit inputs of a get operation."""
    result = list(records)

    criteria = parse_json_input(inputs.get('filter'))
    if isinstance(criteria, list):
        result = [r for r in result if all(_matches(r, c) for c in criteria if isinstance(c, dict))]

    sort = parse_json_input(inputs.get('sort'))
    if isinstance(sort, dict) and sort.get('field'):
        field = sort['field']
        present = [r for r in result if r.get(field) is not None]
        missing = [r for r in result if r.get(field) is None]
        try:
            present.sort(key=lambda r: r[field], reverse=sort.get('direction') == 'desc')
        except TypeError:
            present.sort(key=lambda r: str(r[field]), reverse=sort.get('direction') == 'desc')
        result = present + missing

    limit = inputs.get('limit')
    if limit not in (None, ''):
        try:
            result = result[:int(float(limit))]
        except (TypeError, ValueError):
            pass

    return result


def _save(services: NodeServices, table_id: Any, records: List[Dict[str, Any]]):
    try:
        services.table_store.save_records(table_id, records)
    except Exception as e:
        logger.error(f"Failed to save table {table_id}: {e}")
        return str(e) or type(e).__name__
    return None


async def execute_data_table(
    node: Dict[str, Any],
    inputs: Dict[str, Any],
    context: ExecutionContext,
    services: NodeServices,
) -> NodeResult:
    operation = inputs.get('operation') or 'get'
    table_id = inputs.get('tableId')
    if not table_id:
        return NodeResult.fail("Data Table: tableId is required")
    if services.table_store is None:
        return NodeResult.fail("Data Table: table store is not configured")

    table = services.table_store.get_table(table_id)
    if table is None:
        return NodeResult.fail(f"Data Table: Table {table_id} not found")

    records = list(table.get('records') or [])

    if operation == 'create':
        record_data = compose_record_data(inputs)
        _fill_timestamps(record_data, table.get('schema'))
        new_record = {'id': str(uuid.uuid4()), **record_data}
        records.append(new_record)
        error = _save(services, table_id, records)
        if error:
            return NodeResult.fail(f"Data Table create failed: {error}")
        return NodeResult.ok({'success': True, 'result': new_record, 'count': len(records)})

    elif operation == 'get':
        found = query_records(records, inputs)
        return NodeResult.ok({'success': True, 'result': found, 'count': len(found)})

    elif operation == 'update':
        record_id = inputs.get('recordId')
        if not record_id:
            return NodeResult.fail("Data Table update: recordId is required")
        for index, record in enumerate(records):
            if record.get('id') == record_id:
                records[index] = {**record, **compose_record_data(inputs)}
                error = _save(services, table_id, records)
                if error:
                    return NodeResult.fail(f"Data Table update failed: {error}")
                return NodeResult.ok({'success': True, 'result': records[index], 'count': 1})
        return NodeResult.fail(f"Data Table: Record {record_id} not found")

    elif operation == 'delete':
        record_id = inputs.get('recordId')
        if not record_id:
            return NodeResult.fail("Data Table delete: recordId is required")
        remaining = [r for r in records if r.get('id') != record_id]
        error = _save(services, table_id, remaining)
        if error:
            return NodeResult.fail(f"Data Table delete failed: {error}")
        return NodeResult.ok({'success': True, 'result': None, 'count': len(remaining)})

    return NodeResult.fail(f'Data Table: Unknown operation "{operation}"')
