from __future__ import annotations

import argparse
import csv
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from .analysis import ClusterAnalysis
from .config import (
    DEFAULT_K_MAX,
    DEFAULT_K_MIN,
    DEFAULT_LINKAGE,
    DEFAULT_MAX_ITER,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SEED,
    AnalysisConfig,
)
from .data import describe_by_origin, load_wine_dataset
from .errors import DegenerateFeatureError, WineClusterError
from .evaluation import adjusted_rand_index, best_k, crosstab
from .pipeline import degenerate_columns
from .types import ClusterAssignment, Dataset, Linkage, SweepPoint
from .utils import setup_logger

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cluster the red and white wine-quality tables.")
    parser.add_argument("--red-path", required=True, help="Red wine table (CSV).")
    parser.add_argument("--white-path", required=True, help="White wine table (CSV).")
    parser.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, help="Directory for generated artifacts.")
    parser.add_argument("--sep", default=",", help="Field separator of both tables.")
    parser.add_argument("--id-column", default=None, help="Column holding record identifiers.")
    parser.add_argument("--n-clusters", type=int, default=None, help="Fixed cluster count.")
    parser.add_argument("--k-min", type=int, default=DEFAULT_K_MIN, help="Smallest k in the silhouette sweep.")
    parser.add_argument("--k-max", type=int, default=DEFAULT_K_MAX, help="Largest k in the silhouette sweep.")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed for centroid initialisation.")
    parser.add_argument(
        "--linkage",
        choices=[str(v) for v in Linkage],
        default=str(DEFAULT_LINKAGE),
        help="Merge-distance rule for hierarchical clustering.",
    )
    parser.add_argument("--max-iter", type=int, default=DEFAULT_MAX_ITER, help="k-means iteration cap.")
    parser.add_argument(
        "--drop-degenerate",
        action="store_true",
        help="Drop zero-variance feature columns instead of aborting.",
    )
    parser.add_argument("--skip-hierarchical", action="store_true", help="Only run k-means.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logger("winecluster", args.log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    for path in (Path(args.red_path), Path(args.white_path)):
        if not path.exists():
            raise SystemExit(f"Input table not found: {path}")

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = AnalysisConfig(
            seed=args.seed,
            k_min=args.k_min,
            k_max=args.k_max,
            linkage=Linkage(args.linkage),
            max_iter=args.max_iter,
        )
        dataset = load_wine_dataset(args.red_path, args.white_path, sep=args.sep, id_column=args.id_column)
        if args.drop_degenerate:
            dataset = _drop_degenerate(dataset)
        _run(dataset, config, args.n_clusters, args.skip_hierarchical, output_dir)
    except DegenerateFeatureError as exc:
        raise SystemExit(f"{exc} (rerun with --drop-degenerate)") from exc
    except (WineClusterError, ValueError) as exc:
        raise SystemExit(str(exc)) from exc

    print(f"Done. Outputs written to: {output_dir.resolve()}")


def _run(
    dataset: Dataset,
    config: AnalysisConfig,
    n_clusters: int | None,
    skip_hierarchical: bool,
    output_dir: Path,
) -> None:
    n_records = len(dataset)
    if n_records < 2:
        raise SystemExit("At least two records are needed for clustering.")

    analysis = ClusterAnalysis(dataset, config)
    low = max(1, min(config.k_min, n_records))
    high = max(low, min(config.k_max, n_records))
    points = list(analysis.sweep(range(low, high + 1)))

    if n_clusters is not None:
        selected_k = max(1, min(n_clusters, n_records))
    else:
        selected_k = best_k(points)
    logger.info("Selected k=%d", selected_k)

    kmeans = analysis.kmeans(selected_k)
    assignments: dict[str, ClusterAssignment] = {"kmeans": kmeans}
    evaluation: dict[str, object] = {
        "records": n_records,
        "config": {**asdict(config), "linkage": str(config.linkage)},
        "selected_k": selected_k,
        "kmeans": _assignment_metrics(analysis, kmeans, dataset),
        "sweep": [point._asdict() for point in points],
    }

    if not skip_hierarchical:
        hierarchical = analysis.hierarchical(selected_k)
        assignments["hierarchical"] = hierarchical
        evaluation["hierarchical"] = _assignment_metrics(analysis, hierarchical, dataset)
        evaluation["kmeans_vs_hierarchical_ari"] = adjusted_rand_index(kmeans.labels, hierarchical.labels)

    _write_artifacts(output_dir, analysis, points, assignments, evaluation)


def _assignment_metrics(
    analysis: ClusterAnalysis,
    assignment: ClusterAssignment,
    dataset: Dataset,
) -> dict[str, object]:
    metrics: dict[str, object] = {
        "method": assignment.method,
        "k": assignment.k,
        "silhouette": analysis.score(assignment),
        "sizes": {str(c): n for c, n in assignment.sizes().items()},
        "ari_vs_quality": adjusted_rand_index(assignment.labels, dataset.quality),
        "ari_vs_origin": adjusted_rand_index(assignment.labels, [str(o) for o in dataset.origin]),
    }
    if assignment.inertia is not None:
        metrics["inertia"] = assignment.inertia
        metrics["iterations"] = assignment.iterations
        metrics["converged"] = assignment.converged
        metrics["repairs"] = [asdict(r) for r in assignment.repairs]
    return metrics


def _drop_degenerate(dataset: Dataset) -> Dataset:
    bad = [dataset.feature_names[i] for i in degenerate_columns(dataset.features)]
    if not bad:
        return dataset
    logger.warning("Dropping zero-variance feature columns: %s", ", ".join(bad))
    return dataset.drop_features(bad)


def _write_artifacts(
    output_dir: Path,
    analysis: ClusterAnalysis,
    points: list[SweepPoint],
    assignments: dict[str, ClusterAssignment],
    evaluation: dict[str, object],
) -> None:
    dataset = analysis.dataset
    _write_csv(output_dir / "sweep.csv", [point._asdict() for point in points])

    rows = []
    for idx, record_id in enumerate(dataset.record_ids):
        row: dict[str, object] = {
            "record_id": record_id,
            "origin": str(dataset.origin[idx]),
            "quality": int(dataset.quality[idx]),
        }
        for name, assignment in assignments.items():
            row[f"{name}_cluster"] = int(assignment.labels[idx])
        rows.append(row)
    _write_csv(output_dir / "assignments.csv", rows)

    for name, assignment in assignments.items():
        analysis.summary(assignment).to_csv(output_dir / f"{name}_summary.csv", float_format="%.6g")

    kmeans = assignments["kmeans"]
    crosstab(kmeans, dataset.quality, "quality").to_csv(output_dir / "crosstab_quality.csv")
    crosstab(kmeans, [str(o) for o in dataset.origin], "origin").to_csv(output_dir / "crosstab_origin.csv")
    describe_by_origin(dataset).to_csv(output_dir / "origin_summary.csv", float_format="%.6g")

    (output_dir / "evaluation.json").write_text(json.dumps(evaluation, indent=2), encoding="utf-8")
    logger.info("Artifacts written to %s", output_dir)


def _write_csv(path: Path, rows: list[dict]) -> None:
    if not rows:
        path.write_text("", encoding="utf-8")
        return
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)


if __name__ == "__main__":
    main()
