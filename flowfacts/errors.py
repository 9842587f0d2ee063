# flowfacts/errors.py
"""
Error types raised by flowfacts.

Hierarchy::

    FlowFactsError (base)
    ├── MalformedCFGError       - a CFG violates a structural invariant
    ├── SolverDivergenceError   - fixpoint iteration exceeded its bound
    ├── ResultFrozenError       - write to a finished DataflowResult
    ├── IRSyntaxError           - IR text could not be read
    └── UnknownAnalysisError    - unknown analysis id requested

Only structural problems are errors.  Division by a statically known zero
and integer overflow are ordinary analysis outcomes and never raise.
"""

from __future__ import annotations

from typing import Optional


class FlowFactsError(Exception):
    """Base class for every error raised by this package."""


class MalformedCFGError(FlowFactsError):
    """The control-flow graph breaks an invariant the analyses rely on."""


class SolverDivergenceError(FlowFactsError):
    """The worklist did not drain within the configured iteration bound.

    This only happens for a non-monotone transfer function or meet.
    """

    def __init__(self, iterations: int, pending: int) -> None:
        super().__init__(
            f"Dataflow analysis did not converge in {iterations} iterations "
            f"({pending} nodes still pending)"
        )
        self.iterations = iterations
        self.pending = pending


class ResultFrozenError(FlowFactsError):
    """A finished :class:`DataflowResult` was modified."""


class IRSyntaxError(FlowFactsError):
    """IR text could not be parsed or resolved."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class UnknownAnalysisError(FlowFactsError, KeyError):
    """An analysis id not known to the pipeline was requested."""

    def __str__(self) -> str:
        return Exception.__str__(self)
