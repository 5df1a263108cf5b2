"""
Local evaluation of generated candidates.

Every candidate is scored by every evaluator. The best candidate per
evaluator is the first one with a strictly higher score, so earlier
candidates win ties.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from monitoring.shift_evaluators import EvaluationResult, ShiftEvaluator, default_evaluators
from shared.cancellation import CancellationToken, check_cancelled
from shifts.base import EmbeddingShift

from .generators import QueryAnswerPair, ShiftGenerator

logger = logging.getLogger(__name__)


@dataclass
class EvaluatorOutcome:
    evaluator_name: str
    best_shift: Optional[EmbeddingShift]
    best_score: float
    results: List[EvaluationResult] = field(default_factory=list)


@dataclass
class EvaluationReport:
    candidates: List[EmbeddingShift]
    outcomes: List[EvaluatorOutcome]

    def best(self, evaluator_name: Optional[str] = None) -> Optional[EmbeddingShift]:
        """Best shift for the named evaluator (first evaluator when None)."""
        for outcome in self.outcomes:
            if evaluator_name is None or outcome.evaluator_name == evaluator_name:
                return outcome.best_shift
        return None

    def scores(self) -> Dict[str, Dict[str, float]]:
        return {
            o.evaluator_name: {r.shift_name: r.score for r in o.results}
            for o in self.outcomes
        }


class ShiftEvaluationService:
    """
    Usage:
        service = ShiftEvaluationService(generator)
        report = service.evaluate(pairs)
        chosen = report.best()
    """

    def __init__(
        self,
        generator: ShiftGenerator,
        evaluators: Optional[Sequence[ShiftEvaluator]] = None,
    ):
        self.generator = generator
        self.evaluators = list(evaluators) if evaluators else default_evaluators()

    def evaluate(
        self,
        pairs: Sequence[QueryAnswerPair],
        cancellation: Optional[CancellationToken] = None,
    ) -> EvaluationReport:
        """
        Score all candidates for the query of the first pair against every
        pair's answer.
        """
        candidates = list(self.generator.generate(pairs))
        if not pairs:
            return EvaluationReport(candidates, [])

        query = pairs[0].query
        references = [p.answer for p in pairs]

        outcomes = []
        for evaluator in self.evaluators:
            outcome = EvaluatorOutcome(evaluator.name, None, float("-inf"))
            for shift in candidates:
                check_cancelled(cancellation)
                result = evaluator.evaluate(shift, query, references)
                outcome.results.append(result)
                if outcome.best_shift is None or result.score > outcome.best_score:
                    outcome.best_shift = shift
                    outcome.best_score = result.score
            outcomes.append(outcome)
            if outcome.best_shift is not None:
                logger.info(
                    f"{evaluator.name}: selected {outcome.best_shift.name} "
                    f"(score={outcome.best_score:.4f}) from {len(candidates)} candidates"
                )
        return EvaluationReport(candidates, outcomes)
