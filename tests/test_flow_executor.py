"""
Tests for the graph scheduler (FlowExecutor)
"""

import asyncio

import pytest

from app.flow_engine.context import ExecutionContext, NodeResult
from app.flow_engine.executor import FlowExecutor
from app.flow_engine.node_executor import NodeExecutor
from conftest import make_edge, make_node


def recording_executor(calls, failing=(), outputs=None, node_timeout=5.0, flow_timeout=20.0):
    """FlowExecutor whose 'step' nodes record their execution order"""
    outputs = outputs or {}

    async def step(node, inputs, context, services):
        calls.append(node['id'])
        if node['id'] in failing:
            return NodeResult.fail(f"{node['id']} exploded")
        return NodeResult.ok(outputs.get(node['id'], {'value': node['id']}))

    node_executor = NodeExecutor(node_timeout=node_timeout, handlers={'step': step})
    return FlowExecutor(node_executor, flow_timeout=flow_timeout)


def run(executor, nodes, edges, context=None):
    return asyncio.run(executor.run(nodes, edges, context or ExecutionContext()))


class TestScheduling:
    """Test queue ordering and reachability"""

    def test_all_sources_start(self):
        calls = []
        nodes = [make_node(n, 'step') for n in ('a1', 'a2', 'b1', 'b2')]
        edges = [make_edge('a1', 'a2'), make_edge('b1', 'b2')]
        result = run(recording_executor(calls), nodes, edges)

        assert sorted(calls) == ['a1', 'a2', 'b1', 'b2']
        assert not result.has_error

    def test_node_waits_for_every_predecessor(self):
        """Join node runs after both the short and the long path"""
        calls = []
        nodes = [make_node(n, 'step') for n in ('a', 'b', 'x', 'c')]
        edges = [make_edge('a', 'b'), make_edge('b', 'x'), make_edge('x', 'c'), make_edge('a', 'c')]
        run(recording_executor(calls), nodes, edges)

        assert calls == ['a', 'b', 'x', 'c']

    def test_each_node_runs_once(self):
        calls = []
        nodes = [make_node(n, 'step') for n in 'abcd']
        edges = [make_edge('a', 'b'), make_edge('a', 'c'), make_edge('b', 'd'), make_edge('c', 'd')]
        run(recording_executor(calls), nodes, edges)

        assert calls.count('d') == 1
        assert calls[-1] == 'd'

    def test_success_output_stored_with_success_flag(self):
        calls = []
        context = ExecutionContext()
        run(recording_executor(calls, outputs={'a': {'n': 1}}), [make_node('a', 'step')], [], context)

        assert context['a'] == {'n': 1, 'success': True}

    def test_disabled_node_passes_through(self):
        calls = []
        nodes = [make_node('a', 'step'), make_node('b', 'step', disabled=True), make_node('c', 'step')]
        edges = [make_edge('a', 'b'), make_edge('b', 'c')]
        context = ExecutionContext()
        run(recording_executor(calls), nodes, edges, context)

        assert calls == ['a', 'c']
        assert not context.has_output('b')

    def test_logs_info_then_success(self):
        calls = []
        result = run(recording_executor(calls), [make_node('a', 'step', label='First')], [])

        assert [entry.type for entry in result.logs] == ['info', 'success']
        assert result.logs[0].message == 'Executing First'
        assert result.logs[1].message == 'Execution completed'
        assert result.logs[1].data == {'value': 'a'}


class TestConditionBranching:
    """Test true/false edge routing"""

    def _graph(self):
        nodes = [
            make_node('cond', 'step'),
            make_node('yes', 'step'),
            make_node('no', 'step'),
            make_node('after_no', 'step'),
        ]
        nodes[0]['data']['type'] = 'condition'
        nodes[0]['type'] = 'condition'
        edges = [
            make_edge('cond', 'yes', 'true'),
            make_edge('cond', 'no', 'false'),
            make_edge('no', 'after_no'),
        ]
        return nodes, edges

    def _executor(self, calls, result_value):
        async def condition(node, inputs, context, services):
            calls.append(node['id'])
            return NodeResult.ok({'result': result_value})

        async def step(node, inputs, context, services):
            calls.append(node['id'])
            return NodeResult.ok({})

        return FlowExecutor(NodeExecutor(handlers={'condition': condition, 'step': step}))

    def test_true_prunes_false_branch(self):
        calls = []
        nodes, edges = self._graph()
        run(self._executor(calls, True), nodes, edges)

        assert calls == ['cond', 'yes']

    def test_false_prunes_true_branch(self):
        calls = []
        nodes, edges = self._graph()
        run(self._executor(calls, False), nodes, edges)

        assert calls == ['cond', 'no', 'after_no']

    def test_join_after_branches_runs_once(self):
        calls = []
        nodes, edges = self._graph()
        nodes.append(make_node('join', 'step'))
        edges += [make_edge('yes', 'join'), make_edge('after_no', 'join')]
        run(self._executor(calls, True), nodes, edges)

        assert calls == ['cond', 'yes', 'join']


class TestErrorBehavior:
    """Test halting vs tolerated failures"""

    def test_halting_failure_stops_queue(self):
        calls = []
        nodes = [make_node('a', 'step'), make_node('b', 'step'), make_node('c', 'step')]
        edges = [make_edge('a', 'b'), make_edge('b', 'c')]
        context = ExecutionContext()
        result = run(recording_executor(calls, failing={'b'}), nodes, edges, context)

        assert calls == ['a', 'b']
        assert result.has_error
        assert result.error_message == 'b exploded'
        assert result.partial_errors == []
        assert context.has_output('a')
        assert not context.has_output('b')
        assert result.logs[-1].type == 'error'

    def test_tolerated_failure_continues(self):
        calls = []
        nodes = [make_node('a', 'step', errorBehavior='continue', label='Fetch'), make_node('b', 'step')]
        edges = [make_edge('a', 'b')]
        context = ExecutionContext()
        result = run(recording_executor(calls, failing={'a'}), nodes, edges, context)

        assert calls == ['a', 'b']
        assert not result.has_error
        assert context['a'] == {'error': 'a exploded', 'success': False, '_failedNode': True}
        assert [p.to_dict() for p in result.partial_errors] == [
            {'nodeId': 'a', 'nodeName': 'Fetch', 'error': 'a exploded'}
        ]

    def test_cycle_rejected_before_running(self):
        calls = []
        nodes = [make_node(n, 'step') for n in 'abc']
        edges = [make_edge('a', 'b'), make_edge('b', 'c'), make_edge('c', 'b')]
        result = run(recording_executor(calls), nodes, edges)

        assert calls == []
        assert result.has_error
        assert 'cycle' in result.error_message
        assert 'b' in result.error_message and 'c' in result.error_message


class TestResponseCapture:

    def test_last_response_wins(self):
        async def response(node, inputs, context, services):
            return NodeResult.ok({'statusCode': 200, 'body': node['id']})

        nodes = [make_node('r1', 'response'), make_node('r2', 'response')]
        executor = FlowExecutor(NodeExecutor(handlers={'response': response}))
        result = run(executor, nodes, [make_edge('r1', 'r2')])

        assert result.has_response_node
        assert result.final_output == {'statusCode': 200, 'body': 'r2'}

    def test_no_response_node(self):
        calls = []
        result = run(recording_executor(calls), [make_node('a', 'step')], [])
        assert not result.has_response_node


class TestDeadlines:

    def test_node_timeout_is_a_failure(self):
        async def slow(node, inputs, context, services):
            await asyncio.sleep(5)
            return NodeResult.ok({})

        executor = FlowExecutor(NodeExecutor(node_timeout=0.05, handlers={'slow': slow}))
        result = run(executor, [make_node('s', 'slow')], [])

        assert result.has_error
        assert 'timed out' in result.error_message

    def test_flow_budget_exhausted(self):
        calls = []

        async def slow(node, inputs, context, services):
            calls.append(node['id'])
            await asyncio.sleep(0.2)
            return NodeResult.ok({})

        executor = FlowExecutor(NodeExecutor(node_timeout=5.0, handlers={'slow': slow}), flow_timeout=0.1)
        nodes = [make_node('a', 'slow'), make_node('b', 'slow')]
        result = run(executor, nodes, [make_edge('a', 'b')])

        assert calls == ['a']
        assert result.has_error
        assert 'timed out' in result.error_message


@pytest.mark.asyncio
async def test_handler_exception_becomes_failure():
    async def broken(node, inputs, context, services):
        raise RuntimeError('boom')

    executor = FlowExecutor(NodeExecutor(handlers={'broken': broken}))
    result = await executor.run([make_node('x', 'broken')], [], ExecutionContext())

    assert result.has_error
    assert result.error_message == 'boom'
