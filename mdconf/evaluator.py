"""Host execution environment: compiling and invoking block source."""

from __future__ import annotations

import ast
import importlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import CompileError

_CHUNK_NAME = "__mdconf_block__"


@dataclass
class Invocation:
    """Outcome of running a unit with every failure caught."""

    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


class CompiledUnit:
    """A compiled block that runs in a fresh namespace each time it is called."""

    def __init__(
        self,
        code: Any,
        *,
        strategy: str,
        namespace_factory: Callable[[], Dict[str, Any]],
        export: Optional[str] = None,
    ) -> None:
        self.code = code
        self.strategy = strategy
        self.export = export
        self._namespace_factory = namespace_factory

    def __call__(self) -> Any:
        namespace = self._namespace_factory()
        if self.strategy == "expression":
            return eval(self.code, namespace)
        exec(self.code, namespace)
        if self.strategy == "block":
            return namespace[_CHUNK_NAME]()
        return namespace.get(self.export) if self.export else None

    def __repr__(self) -> str:
        return f"CompiledUnit(strategy={self.strategy!r}, export={self.export!r})"


def _compile_as_is(source: str, filename: str) -> Tuple[str, Any]:
    tree = ast.parse(source, filename, "exec")
    # A lone non-call expression is a value, not a chunk of statements.
    if len(tree.body) == 1 and isinstance(tree.body[0], ast.Expr):
        node = tree.body[0]
        if not isinstance(node.value, ast.Call):
            line = source.splitlines()[node.lineno - 1] if source else ""
            raise SyntaxError(
                "expression is not a statement",
                (filename, node.lineno, node.col_offset + 1, line),
            )
    return "as-is", compile(tree, filename, "exec")


def _compile_as_expression(source: str, filename: str) -> Tuple[str, Any]:
    return "expression", compile(source, filename, "eval")


def _compile_as_block(source: str, filename: str) -> Tuple[str, Any]:
    # The body keeps its own line numbers so tracebacks point into the block.
    body = ast.parse(source, filename, "exec").body
    module = ast.parse(f"def {_CHUNK_NAME}():\n    pass\n", filename, "exec")
    module.body[0].body = body or [ast.Pass()]  # type: ignore[attr-defined]
    ast.fix_missing_locations(module)
    return "block", compile(module, filename, "exec")


_STRATEGIES: List[Callable[[str, str], Tuple[str, Any]]] = [
    _compile_as_is,
    _compile_as_expression,
    _compile_as_block,
]


class Evaluator:
    """Compiles block source and invokes the result in isolated scopes."""

    def __init__(self, host_globals: Optional[Mapping[str, Any]] = None) -> None:
        self.host_globals: Dict[str, Any] = dict(host_globals or {})

    def namespace(self) -> Dict[str, Any]:
        namespace: Dict[str, Any] = {"__name__": "__mdconf__", "require": importlib.import_module}
        namespace.update(self.host_globals)
        return namespace

    def compile(
        self,
        source: str,
        *,
        export: Optional[str] = None,
        filename: str = "<block>",
    ) -> CompiledUnit:
        """Compile ``source`` with the first strategy that accepts it.

        Strategies run in order: as-is, as an expression, then wrapped in a
        function scope. When all of them fail the first ``SyntaxError`` is
        raised as a :class:`CompileError`.
        """
        first_error: Optional[SyntaxError] = None
        for strategy in _STRATEGIES:
            try:
                name, code = strategy(source, filename)
            except (SyntaxError, ValueError) as exc:
                if first_error is None:
                    first_error = exc if isinstance(exc, SyntaxError) else SyntaxError(str(exc))
                continue
            return CompiledUnit(code, strategy=name, namespace_factory=self.namespace, export=export)
        assert first_error is not None
        raise CompileError(source, first_error)

    def invoke(self, target: Callable[..., Any], *args: Any) -> Invocation:
        """Call ``target`` and report the outcome instead of raising."""
        try:
            value = target(*args)
        except (Exception, SystemExit) as exc:
            return Invocation(ok=False, error=exc)
        return Invocation(ok=True, value=value)


__all__ = ["CompiledUnit", "Evaluator", "Invocation"]
