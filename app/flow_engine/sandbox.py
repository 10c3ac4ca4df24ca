"""
Sandbox - Runs user-supplied Python snippets with RestrictedPython

Snippets are function bodies: they receive named arguments (e.g. inputs and
context) and `return` their result. Imports, private attributes and
unguarded writes are rejected.
"""

import json
import logging
import math
import operator
import textwrap
from typing import Any, Dict, Sequence

from RestrictedPython import compile_restricted, limited_builtins, safe_builtins
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector

logger = logging.getLogger(__name__)

SNIPPET_NAME = 'snippet'

_INPLACE_OPERATORS = {
    '+=': operator.iadd,
    '-=': operator.isub,
    '*=': operator.imul,
    '/=': operator.itruediv,
    '//=': operator.ifloordiv,
    '%=': operator.imod,
    '**=': operator.ipow,
    '|=': operator.ior,
    '&=': operator.iand,
}


class SandboxError(Exception):
    """Compilation or runtime failure of a sandboxed snippet"""
    pass


class _SafeJson:
    """Restricted JSON interface."""

    @staticmethod
    def loads(s):
        return json.loads(s)

    @staticmethod
    def dumps(obj, indent=None, sort_keys=False):
        return json.dumps(obj, indent=indent, sort_keys=sort_keys, default=str)


class _SafeMath:
    """Restricted math interface."""
    ceil = staticmethod(math.ceil)
    floor = staticmethod(math.floor)
    sqrt = staticmethod(math.sqrt)
    log = staticmethod(math.log)
    isclose = staticmethod(math.isclose)
    pi = math.pi


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    func = _INPLACE_OPERATORS.get(op)
    if func is None:
        raise SandboxError(f"Operator {op} is not allowed")
    return func(target, value)


def _build_builtins() -> Dict[str, Any]:
    builtins = dict(safe_builtins)
    builtins.update(limited_builtins)
    builtins.update({
        'dict': dict,
        'list': list,
        'set': set,
        'min': min,
        'max': max,
        'sum': sum,
        'any': any,
        'all': all,
        'enumerate': enumerate,
        'map': map,
        'filter': filter,
        'reversed': reversed,
    })
    return builtins


class Sandbox:
    """
    Compiles and runs snippets.

    Usage:
        sandbox = Sandbox()
        result = sandbox.run("return inputs['a'] + 1", {'inputs': {'a': 1}})
    """

    def __init__(self):
        self._builtins = _build_builtins()

    def _globals(self) -> Dict[str, Any]:
        return {
            '__builtins__': self._builtins,
            '_getattr_': safer_getattr,
            '_getitem_': default_guarded_getitem,
            '_getiter_': default_guarded_getiter,
            '_write_': full_write_guard,
            '_iter_unpack_sequence_': guarded_iter_unpack_sequence,
            '_unpack_sequence_': guarded_unpack_sequence,
            '_inplacevar_': _inplacevar,
            '_print_': PrintCollector,
            'json': _SafeJson(),
            'math': _SafeMath(),
        }

    def compile(self, code: str, arg_names: Sequence[str]):
        """Compile a snippet body into a restricted code object."""
        body = textwrap.indent(textwrap.dedent(code or '').strip() or 'pass', '    ')
        source = f"def {SNIPPET_NAME}({', '.join(arg_names)}):\n{body}\n"
        try:
            return compile_restricted(source, filename='<flow-snippet>', mode='exec')
        except SyntaxError as e:
            raise SandboxError(str(e)) from e

    def run(self, code: str, arguments: Dict[str, Any]) -> Any:
        """
        Run a snippet.

        Args:
            code: Function body; use `return` to produce the result
            arguments: Named arguments made available to the snippet

        Returns:
            The snippet's return value

        Raises:
            SandboxError: On compilation or runtime failure
        """
        byte_code = self.compile(code, list(arguments.keys()))
        namespace = self._globals()
        try:
            exec(byte_code, namespace)
            return namespace[SNIPPET_NAME](**arguments)
        except SandboxError:
            raise
        except Exception as e:
            logger.debug(f"Snippet raised {type(e).__name__}: {e}")
            raise SandboxError(str(e) or type(e).__name__) from e


sandbox = Sandbox()
