from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from ..checks import run_matrix_checks
from ..data import read_user_records
from ..item_cf.errors import DegenerateNormError, ItemCFError, MalformedRecordError
from ..item_cf.pipeline import ItemCFConfig, ItemCFPipeline
from ..paths import ProjectPaths, get_repo_root, resolve_against
from ..store.matrix_csv import write_csv_matrix, write_text_atomic
from ..utils import progress_logger, setup_logging


logger = logging.getLogger(__name__)


def load_config(config_path: Path) -> dict[str, Any]:
    """Load the YAML config; it must be a mapping."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    cfg_yaml = yaml.safe_load(config_path.read_text())
    if cfg_yaml is None:
        return {}
    if not isinstance(cfg_yaml, dict):
        raise ValueError(f"Expected config YAML to be a mapping, got: {type(cfg_yaml)}")
    return cfg_yaml


def _section(cfg_yaml: dict[str, Any], name: str) -> dict[str, Any]:
    return cfg_yaml.get(name, {}) if isinstance(cfg_yaml.get(name), dict) else {}


def manifest_path_for(output_path: Path) -> Path:
    return output_path.with_name(output_path.name + ".meta.json")


def run_item_cf_build(
    *,
    input_path: Path,
    output_path: Path,
    cfg: ItemCFConfig,
    write_manifest: bool = True,
) -> dict[str, Any]:
    """Read user records, build the item-item similarity matrix and write it as CSV.

    Nothing is written unless the whole run succeeds.
    """
    input_path = Path(input_path).resolve()
    output_path = Path(output_path).resolve()
    if not input_path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")

    def _on_malformed(err: MalformedRecordError) -> None:
        logger.warning("Skipping malformed record: %s", err)

    def _on_degenerate(err: DegenerateNormError) -> None:
        logger.debug("%s", err)

    pipeline = ItemCFPipeline(
        cfg,
        on_progress=progress_logger(logger, "users"),
        on_malformed=_on_malformed,
        on_degenerate=_on_degenerate,
    )

    logger.info("Reading user records from %s (config=%s)", input_path, cfg.to_dict())
    records = read_user_records(input_path, skip_malformed=cfg.skip_malformed)
    upper = pipeline.accumulate(records)

    logger.info(
        "finalize matrix %d rows x %d cols (%d cells)",
        len(upper.row_keys()),
        len(upper.column_keys()),
        len(upper),
    )
    matrix = pipeline.finalize(upper)
    stats = pipeline.stats

    if stats.dropped_cells:
        logger.warning("Dropped %d cells with a zero diagonal norm", stats.dropped_cells)
    if stats.records_skipped:
        logger.warning("Skipped %d malformed records", stats.records_skipped)

    for check in run_matrix_checks(matrix, row_norm=cfg.row_norm, strict=False):
        if check.status == "PASS":
            logger.debug("[%s] %s", check.status, check.name)
        else:
            logger.warning("[%s] %s: %s", check.status, check.name, check.details)

    write_csv_matrix(matrix, output_path)

    now_utc = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    manifest = {
        "built_at_utc": now_utc,
        "input": str(input_path),
        "output": str(output_path),
        "config": cfg.to_dict(),
        "stats": asdict(stats),
    }
    if write_manifest:
        meta_path = manifest_path_for(output_path)
        write_text_atomic(meta_path, json.dumps(manifest, indent=2, sort_keys=True) + "\n")

    logger.info(
        "Item CF build complete: users=%d items=%d cells=%d",
        stats.records_seen - stats.records_skipped,
        stats.items,
        stats.final_cells,
    )
    return manifest


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Build an item-item cosine similarity matrix from user ratings.")
    p.add_argument("-i", "--input", type=Path, default=None, help="JSON-lines user records (.gz ok).")
    p.add_argument("-o", "--output", type=Path, default=None, help="Output CSV row,col,value (.gz ok).")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--threshold", type=float, default=None, help="Minimum rating for a qualifying item.")
    p.add_argument(
        "--row-norm",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Row-normalize the cosine matrix (overrides item_cf.row_norm).",
    )
    p.add_argument(
        "--emitter",
        type=str,
        default=None,
        choices=["unit", "cosine_weighted", "count"],
        help="Pair emission weighting.",
    )
    p.add_argument("--workers", type=int, default=None, help="Worker processes for accumulation.")
    p.add_argument(
        "--strict-records",
        action="store_true",
        help="Abort on the first malformed record instead of skipping it.",
    )
    p.add_argument("--log-level", type=str, default="INFO", help="Logging level.")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level.upper())

    try:
        repo_root = get_repo_root()
        config_path = resolve_against(repo_root, args.config)
        explicit_config = args.config != Path("config.yaml")
        cfg_yaml = load_config(config_path) if (explicit_config or config_path.exists()) else {}

        paths_cfg = _section(cfg_yaml, "paths")
        paths = ProjectPaths.from_repo_root(
            repo_root,
            data_dir=str(paths_cfg.get("data_dir", "data")),
            artifacts_dir=str(paths_cfg.get("artifacts_dir", "artifacts")),
        )

        if args.input is not None:
            input_path = args.input.resolve()
        elif "input" in paths_cfg:
            input_path = resolve_against(repo_root, str(paths_cfg["input"]))
        else:
            raise ValueError("No input given: pass --input or set paths.input in the config")

        if args.output is not None:
            output_path = args.output.resolve()
        elif "output" in paths_cfg:
            output_path = resolve_against(repo_root, str(paths_cfg["output"]))
        else:
            output_path = paths.item_cf_dir / "item_similarity.csv.gz"

        cfg = ItemCFConfig.from_mapping(
            _section(cfg_yaml, "item_cf"),
            threshold=args.threshold,
            row_norm=args.row_norm,
            emitter=args.emitter,
            workers=args.workers,
            skip_malformed=(False if args.strict_records else None),
        )

        run_item_cf_build(input_path=input_path, output_path=output_path, cfg=cfg)
    except (ItemCFError, OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Item CF build failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
