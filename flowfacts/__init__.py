"""
flowfacts — Monotone Dataflow Analysis over a Three-Address IR
==============================================================

An iterative worklist solver for monotone dataflow frameworks, the
constant-propagation and live-variable instances of it, and a dead code
detector built on their results.

Core modules
------------
ir
    Statements, expressions, variable types and the ``IR`` container.
ir_parser
    Textual IR reader (parsimonious grammar).
ctrlflow_graph
    Statement-level control flow graph with synthetic entry and exit.
abstract_domains
    The ``UNDEF ⊑ c ⊑ NAC`` value lattice and the per-point fact stores.
dataflow_engine
    Analysis contract, ``DataflowResult`` and the worklist solver.
dataflow_analyses
    ``ConstantPropagation`` and ``LiveVariableAnalysis``.
dead_code
    Unreachable code and useless assignment detection.
pipeline
    ``run_all_analyses`` convenience driver.

Quick start
-----------
>>> from flowfacts import parse_ir, run_all_analyses
>>> ir = parse_ir('''
...     x = 1
...     if (x == 1) goto L
...     x = 2
... L:  return x
... ''')
>>> [stmt.index for stmt in run_all_analyses(ir).dead_code]
[2]
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Internal registry: module_name -> names re-exported at package level
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "FlowFactsError",
        "MalformedCFGError",
        "SolverDivergenceError",
        "ResultFrozenError",
        "IRSyntaxError",
        "UnknownAnalysisError",
    ],
    "config": [
        "SolverConfig",
        "WorklistStrategy",
    ],
    "ir": [
        "IR",
        "Var",
        "PrimitiveType",
        "can_hold_int",
    ],
    "ctrlflow_graph": [
        "CFG",
        "CFGEdge",
        "EdgeKind",
        "build_cfg",
        "cfg_summary",
    ],
    "ir_parser": [
        "parse_ir",
    ],
    "abstract_domains": [
        "Value",
        "UNDEF",
        "NAC",
        "meet_value",
        "CPFact",
        "SetFact",
    ],
    "dataflow_engine": [
        "Direction",
        "DataflowAnalysis",
        "DataflowResult",
        "WorklistSolver",
        "solve",
        "check_monotonicity",
    ],
    "dataflow_analyses": [
        "ConstantPropagation",
        "LiveVariableAnalysis",
    ],
    "dead_code": [
        "DeadCodeDetection",
        "detect",
        "has_no_side_effect",
    ],
    "pipeline": [
        "AnalysisResults",
        "run_all_analyses",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"flowfacts: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(
                f"flowfacts.{module_rel_name} does not export '{name}'"
            )
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


def list_submodules() -> List[str]:
    """Return the names of all submodules in the package."""
    return sorted(_CORE_MODULES)
