"""
Tests for the RestrictedPython snippet sandbox
"""

import pytest
from app.flow_engine.sandbox import Sandbox, SandboxError


@pytest.fixture
def sandbox():
    return Sandbox()


class TestSandbox:
    """Test snippet execution and restrictions"""

    def test_returns_value(self, sandbox):
        assert sandbox.run("return inputs['a'] + 1", {'inputs': {'a': 1}}) == 2

    def test_multiline_snippet(self, sandbox):
        code = """
            total = 0
            for item in items:
                total += item['qty']
            return {'total': total, 'count': len(items)}
        """
        result = sandbox.run(code, {'items': [{'qty': 2}, {'qty': 3}]})
        assert result == {'total': 5, 'count': 2}

    def test_json_and_math_helpers(self, sandbox):
        assert sandbox.run("return json.loads(raw)['x']", {'raw': '{"x": 3}'}) == 3
        assert sandbox.run("return math.ceil(value)", {'value': 1.2}) == 2

    def test_empty_code_returns_none(self, sandbox):
        assert sandbox.run('', {}) is None

    def test_import_rejected(self, sandbox):
        with pytest.raises(SandboxError):
            sandbox.run("import os\nreturn os.getcwd()", {})

    def test_private_attribute_rejected(self, sandbox):
        """Dunder access does not compile"""
        with pytest.raises(SandboxError):
            sandbox.run("return inputs.__class__", {'inputs': {}})

    def test_open_unavailable(self, sandbox):
        with pytest.raises(SandboxError):
            sandbox.run("return open('/etc/passwd').read()", {})

    def test_syntax_error(self, sandbox):
        with pytest.raises(SandboxError):
            sandbox.run("return (", {})

    def test_runtime_error_wrapped(self, sandbox):
        with pytest.raises(SandboxError) as exc_info:
            sandbox.run("return 1 / 0", {})
        assert 'division' in str(exc_info.value)

    def test_arguments_are_isolated_between_runs(self, sandbox):
        sandbox.run("data['x'] = 1\nreturn data", {'data': {}})
        assert sandbox.run("return data", {'data': {}}) == {}
