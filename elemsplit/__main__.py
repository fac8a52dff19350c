import argparse
import dataclasses
import json
import logging
import sys
from typing import Optional, Sequence

from elemsplit import SplitState
from elemsplit.scene import SceneError, load_scene, run_scene

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Split building elements described in a JSON scene")
    parser.add_argument("path", help="Path to the JSON scene")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Override the point-equality tolerance of the scene",
    )
    parser.add_argument(
        "--clearance",
        type=float,
        help="Override the end clearance for linear splits",
    )
    parser.add_argument(
        "--hole-policy",
        choices=["drop", "abort"],
        help="What to do with holes the cut crosses an unsupported number of times",
    )
    parser.add_argument(
        "--keep-unmovable",
        action="store_true",
        help="Finish the split even when some hosted items cannot be moved",
    )
    parser.add_argument(
        "--output",
        help="Write the outcome as JSON to this path instead of stdout",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    logger.info("Loading scene from %s", args.path)
    try:
        scene = load_scene(args.path)
    except (OSError, SceneError, KeyError, ValueError) as exc:
        logger.error("Could not load scene: %s", exc)
        raise SystemExit(2)

    overrides = {}
    if args.tolerance is not None:
        overrides["tolerance"] = args.tolerance
    if args.clearance is not None:
        overrides["clearance"] = args.clearance
    if args.hole_policy:
        overrides["hole_policy"] = args.hole_policy
    if args.keep_unmovable:
        overrides["abort_on_reassignment_failure"] = False
    try:
        scene.config = dataclasses.replace(scene.config, **overrides)
        scene.host.tolerance = scene.config.tolerance
    except ValueError as exc:
        logger.error("Invalid option: %s", exc)
        raise SystemExit(2)

    try:
        outcome = run_scene(scene)
    except (SceneError, KeyError, ValueError) as exc:
        logger.error("Invalid operation: %s", exc)
        raise SystemExit(2)

    text = json.dumps(outcome.summary(), indent=2, sort_keys=True)
    if args.output:
        with open(args.output, "w") as fout:
            fout.write(text + "\n")
        logger.info("Wrote outcome to %s", args.output)
    else:
        sys.stdout.write(text + "\n")

    if outcome.state is SplitState.ABORTED:
        logger.error("Split aborted: %s", outcome.error)
        raise SystemExit(1)
    if outcome.state is SplitState.UNCHANGED:
        logger.info("Nothing to split")
    else:
        logger.info("Created %d element(s)", len(outcome.created))


if __name__ == "__main__":
    main()
