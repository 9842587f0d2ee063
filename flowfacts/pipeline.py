"""
flowfacts/pipeline.py
═════════════════════

Convenience: run several analyses over one routine in one call.

    ir ──► build_cfg ──► constprop ─┐
                    └──► livevar  ──┴──► deadcode

Requesting ``deadcode`` pulls in ``constprop`` and ``livevar``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

from flowfacts.abstract_domains import CPFact, SetFact
from flowfacts.config import SolverConfig
from flowfacts.ctrlflow_graph import CFG, build_cfg
from flowfacts.dataflow_analyses import ConstantPropagation, LiveVariableAnalysis
from flowfacts.dataflow_engine import DataflowResult, solve
from flowfacts.dead_code import DeadCodeDetection
from flowfacts.errors import UnknownAnalysisError
from flowfacts.ir import IR, Stmt

logger = logging.getLogger(__name__)

ALL_ANALYSES: Tuple[str, ...] = (
    ConstantPropagation.ID,
    LiveVariableAnalysis.ID,
    DeadCodeDetection.ID,
)

_REQUIRES = {
    DeadCodeDetection.ID: (ConstantPropagation.ID, LiveVariableAnalysis.ID),
}


@dataclass
class AnalysisResults:
    """Collected results from running multiple analyses."""
    ir: IR
    cfg: CFG
    constants: Optional[DataflowResult[CPFact]] = None
    live_vars: Optional[DataflowResult[SetFact]] = None
    dead_code: Optional[List[Stmt]] = None
    ran: List[str] = field(default_factory=list)

    @property
    def all_analyses(self) -> List[Tuple[str, Any]]:
        result = []
        for name, attr in zip(ALL_ANALYSES, ("constants", "live_vars", "dead_code")):
            val = getattr(self, attr)
            if val is not None:
                result.append((name, val))
        return result


def _expand(requested: Iterable[str]) -> List[str]:
    wanted = set()
    for name in requested:
        if name not in ALL_ANALYSES:
            raise UnknownAnalysisError(
                f"unknown analysis {name!r}; valid ids: {', '.join(ALL_ANALYSES)}"
            )
        wanted.add(name)
        wanted.update(_REQUIRES.get(name, ()))
    # ALL_ANALYSES is already in dependency order
    return [name for name in ALL_ANALYSES if name in wanted]


def run_all_analyses(
    ir: IR,
    config: Optional[SolverConfig] = None,
    analyses: Optional[Iterable[str]] = None,
) -> AnalysisResults:
    """
    Run a suite of analyses on one routine.

    Parameters
    ----------
    ir : IR
    config : optional SolverConfig shared by every dataflow solve
    analyses : optional iterable of analysis ids (default: all).
        Valid ids: "constprop", "livevar", "deadcode"

    Returns
    -------
    AnalysisResults with populated fields for the analyses that ran.

    Raises
    ------
    UnknownAnalysisError
        If an id is not one of the valid ids.
    """
    if analyses is None:
        analyses = ALL_ANALYSES
    elif isinstance(analyses, str):
        analyses = [analyses]
    order = _expand(analyses)
    cfg = build_cfg(ir)
    results = AnalysisResults(ir=ir, cfg=cfg)
    logger.info("Analysing %r: %s", ir, ", ".join(order))

    if ConstantPropagation.ID in order:
        results.constants = solve(cfg, ConstantPropagation(), config)
        results.ran.append(ConstantPropagation.ID)

    if LiveVariableAnalysis.ID in order:
        results.live_vars = solve(cfg, LiveVariableAnalysis(), config)
        results.ran.append(LiveVariableAnalysis.ID)

    if DeadCodeDetection.ID in order:
        results.dead_code = DeadCodeDetection().analyze(
            ir, cfg, results.constants, results.live_vars
        )
        results.ran.append(DeadCodeDetection.ID)
        logger.info(
            "%s: %d dead statement(s)", ir.method_name, len(results.dead_code)
        )

    return results
