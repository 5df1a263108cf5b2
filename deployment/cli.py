"""
Command-line entry point for the embedding shift engine.

Commands:
    train     Learn a delta shift from a labeled dataset and save it
    eval      Compare a shift against the identity baseline and apply the gate
    adaptive  Select a shift per query with the adaptive workflow
    inspect   Show the latest or best saved training result

Exit codes:
    0  success
    1  argument or runtime error
    2  acceptance gate failed
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from adaptive.workflow import AdaptiveWorkflow
from embeddings.embedder import EmbeddingProvider, create_embedding_provider, embed_texts
from monitoring.acceptance_gate import EvalAcceptanceGate
from monitoring.gate_manifest import try_write_gate_manifest
from monitoring.shift_evaluation import run_baseline_vs_shift
from shared.config import Settings, get_settings
from shared.schemas import ShiftMethod, TrainingMode
from shared.vector_ops import fit_to_dimension
from shifts.additive import AdditiveShift
from shifts.base import EmbeddingShift
from shifts.identity import NoShift
from shifts.keyword_boost import (
    INSURANCE_DELTA_BOOSTS,
    INSURANCE_FIRST_BOOSTS,
    KeywordBoostShift,
    keyword_vector,
)
from shifts.multiplicative import MultiplicativeShift
from shifts.noise import RandomNoiseShift
from shifts.pipeline import EmbeddingShiftPipeline
from shifts.staged import DeltaShift, FirstShift
from training.dataset import load_dataset
from training.repository import FileSystemShiftTrainingResultRepository
from training.trainer import PosNegTrainer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_GATE_FAILED = 2


class CliUsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad arguments; 2 is reserved for the gate."""

    def error(self, message):
        raise CliUsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="embedding-shift", description="Embedding shift engine")
    parser.add_argument("--results-root", help="Root directory for training results")
    parser.add_argument("--provider", help="Embedding provider: sim, semantic-hash, keyword")
    parser.add_argument("--log-level", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    train = sub.add_parser("train", help="Learn and save a delta shift")
    train.add_argument("dataset", help="Dataset directory")
    train.add_argument("--workflow", help="Workflow name")
    train.add_argument("--hardneg-topk", type=int, help="Hard negatives per query")
    train.add_argument("--max-norm", type=float, help="Delta L2 norm cap")
    train.add_argument("--no-clip", action="store_true", help="Disable norm clipping")
    train.add_argument("--cancel-eps", type=float, help="Cancel-out epsilon")
    train.add_argument("--mode", choices=["micro", "production"], help="Training mode")
    train.add_argument("--keyword-first", action="store_true", help="Measure against the keyword First prior")

    ev = sub.add_parser("eval", help="Compare a shift with the identity baseline")
    ev.add_argument("dataset", help="Dataset directory")
    ev.add_argument(
        "--shift",
        default="identity",
        help="identity | zero | learned | keyword | first+delta | noise:AMPLITUDE",
    )
    ev.add_argument("--workflow", help="Workflow name for --shift learned")
    ev.add_argument("--use-best", action="store_true", help="Use the best instead of latest result")
    ev.add_argument(
        "--include-cancelled", action="store_true", help="Allow a cancelled training result"
    )
    ev.add_argument("--gate-profile", help="rank | rank+cosine")
    ev.add_argument("--gate-eps", type=float, help="Gate tolerance")
    ev.add_argument("--results-dir", help="Where to write acceptance_gate.json")

    ad = sub.add_parser("adaptive", help="Select a shift per query")
    ad.add_argument("dataset", help="Dataset directory")
    ad.add_argument("--workflow", help="Workflow name")
    ad.add_argument("--use-best", action="store_true")
    ad.add_argument("--include-cancelled", action="store_true")
    ad.add_argument("--baseline", action="store_true", help="Force the identity shift")

    ins = sub.add_parser("inspect", help="Show a saved training result")
    ins.add_argument("--workflow", help="Workflow name")
    ins.add_argument("--best", action="store_true")
    ins.add_argument("--include-cancelled", action="store_true")

    return parser


def _repository(settings: Settings, args) -> FileSystemShiftTrainingResultRepository:
    return FileSystemShiftTrainingResultRepository(args.results_root or settings.RESULTS_ROOT)


def _provider(settings: Settings, args) -> EmbeddingProvider:
    config = settings.embedding
    if args.provider:
        config = dataclasses.replace(config, provider=args.provider)
    return create_embedding_provider(config)


def parse_shift(spec: str, dimension: int, settings: Settings, args) -> EmbeddingShift:
    name = spec.strip().lower()
    if name in ("identity", "none"):
        return NoShift()
    if name == "zero":
        return MultiplicativeShift.uniform(0.0, dimension, name="zero")
    if name == "keyword":
        return KeywordBoostShift(INSURANCE_FIRST_BOOSTS, dimension=dimension)
    if name == "first+delta":
        return EmbeddingShiftPipeline([
            FirstShift("insurance-first", keyword_vector(INSURANCE_FIRST_BOOSTS, dimension)),
            DeltaShift("insurance-delta", keyword_vector(INSURANCE_DELTA_BOOSTS, dimension)),
        ])
    if name.startswith("noise:"):
        try:
            amplitude = float(name.split(":", 1)[1])
        except ValueError:
            raise CliUsageError(f"Invalid noise amplitude in {spec!r}") from None
        return RandomNoiseShift(amplitude, seed=settings.embedding.noise_seed)
    if name == "learned":
        workflow = args.workflow or settings.adaptive.workflow_name
        repo = _repository(settings, args)
        include_cancelled = args.include_cancelled
        if args.use_best:
            result = repo.load_best(workflow, include_cancelled)
        else:
            result = repo.load_latest(workflow)
        if result is None or not result.delta_vector:
            raise CliUsageError(f"No training result found for workflow {workflow!r}")
        if result.is_cancelled and not include_cancelled:
            raise CliUsageError(
                f"Training result for {workflow!r} is cancelled "
                f"({result.cancel_reason}); pass --include-cancelled to use it"
            )
        return AdditiveShift(
            fit_to_dimension(result.delta_vector, dimension), name=f"learned:{workflow}"
        )
    raise CliUsageError(f"Unknown shift {spec!r}")


def cmd_train(settings: Settings, args) -> int:
    config = settings.training
    overrides = {}
    if args.hardneg_topk is not None:
        overrides["hard_neg_top_k"] = args.hardneg_topk
    if args.max_norm is not None:
        overrides["max_l2_norm"] = args.max_norm
    if args.no_clip:
        overrides["disable_norm_clip"] = True
    if args.cancel_eps is not None:
        overrides["cancel_out_epsilon"] = args.cancel_eps
    if args.mode:
        overrides["mode"] = TrainingMode.PRODUCTION if args.mode == "production" else TrainingMode.MICRO
    config = dataclasses.replace(config, **overrides)

    provider = _provider(settings, args)
    first_shift = None
    if args.keyword_first:
        first_shift = KeywordBoostShift(INSURANCE_FIRST_BOOSTS, dimension=provider.dimension)

    dataset = load_dataset(args.dataset)
    trainer = PosNegTrainer(provider, _repository(settings, args), config, first_shift)
    result = trainer.train_dataset(
        dataset,
        args.workflow or settings.adaptive.workflow_name,
        base_directory=str(Path(args.dataset).resolve()),
    )
    print(json.dumps({
        "workflow": result.workflow_name,
        "cancelled": result.is_cancelled,
        "cancel_reason": result.cancel_reason,
        "delta_norm": result.delta_norm,
        "improvement_first": result.improvement_first,
        "improvement_first_plus_delta": result.improvement_first_plus_delta,
        "stats": result.stats,
    }, indent=2))
    return EXIT_OK


def cmd_eval(settings: Settings, args) -> int:
    provider = _provider(settings, args)
    dataset = load_dataset(args.dataset)
    shift = parse_shift(args.shift, provider.dimension, settings, args)

    comparison = run_baseline_vs_shift(provider, dataset.documents, dataset.queries, shift)

    profile = args.gate_profile or settings.gate.profile
    epsilon = args.gate_eps if args.gate_eps is not None else settings.gate.epsilon
    gate = EvalAcceptanceGate.create_from_profile(profile, epsilon)
    gate_result = gate.evaluate(comparison.metrics)

    results_dir = args.results_dir or str(
        Path(args.results_root or settings.RESULTS_ROOT) / "eval" / dataset.name
    )
    try_write_gate_manifest(results_dir, dataset.name, profile, gate_result, comparison.metrics)

    print(json.dumps({
        "dataset": dataset.name,
        "shift": shift.name,
        "kind": shift.kind.value,
        "metrics": comparison.metrics,
        "gate": {
            "profile": gate.profile,
            "passed": gate_result.passed,
            "epsilon": gate_result.epsilon,
            "notes": list(gate_result.notes),
        },
    }, indent=2))
    return EXIT_OK if gate_result.passed else EXIT_GATE_FAILED


def cmd_adaptive(settings: Settings, args) -> int:
    config = dataclasses.replace(
        settings.adaptive,
        workflow_name=args.workflow or settings.adaptive.workflow_name,
        use_best=args.use_best or settings.adaptive.use_best,
        include_cancelled=args.include_cancelled or settings.adaptive.include_cancelled,
        method=ShiftMethod.NO_SHIFT_INGEST_BASED if args.baseline else settings.adaptive.method,
    )
    provider = _provider(settings, args)
    dataset = load_dataset(args.dataset)
    references = list(embed_texts(provider, list(dataset.documents.values())))

    workflow = AdaptiveWorkflow.from_repository(_repository(settings, args), config)
    selections = {}
    for query in dataset.queries:
        shift = workflow.run(provider.embed(query.text), references)
        selections[query.query_id] = shift.name

    print(json.dumps({"method": config.method.value, "selections": selections}, indent=2))
    return EXIT_OK


def cmd_inspect(settings: Settings, args) -> int:
    workflow = args.workflow or settings.adaptive.workflow_name
    repo = _repository(settings, args)
    if args.best:
        result = repo.load_best(workflow, args.include_cancelled)
    else:
        result = repo.load_latest(workflow)
    if result is None:
        logger.error(f"No training result for workflow {workflow!r}")
        return EXIT_ERROR
    print(result.model_dump_json(indent=2, exclude={"delta_vector"}))
    return EXIT_OK


COMMANDS = {
    "train": cmd_train,
    "eval": cmd_eval,
    "adaptive": cmd_adaptive,
    "inspect": cmd_inspect,
}


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    settings = settings or get_settings()
    try:
        args = build_parser().parse_args(argv)
    except CliUsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    logging.basicConfig(
        level=(args.log_level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return COMMANDS[args.command](settings, args)
    except CliUsageError as e:
        logger.error(str(e))
        return EXIT_ERROR
    except (OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
