"""Entry point for the sale-price model-selection pipeline.

Usage
-----
    python main.py                       # uses configs/config.yaml
    python main.py --config path/to.yaml
    python main.py --data path/to.csv    # override data path
    python main.py --synthetic           # run on generated records
    python main.py --n-jobs 4 --deadline 60

Pipeline steps
--------------
1. Load the cleaned dataset (or generate a synthetic one).
2. Run data quality checks.
3. Seeded train/test split.
4. Standardize features with training statistics (kNN and ridge inputs).
5. Greedy forward selection, scored on the test fold.
6. Folk-knowledge baseline and best of the fixed candidate formulas.
7. k sweep for nearest-neighbor regression on the best fixed subset.
8. Two-phase penalty sweep for ridge regression on the same subset.
9. Rank the finished models by held-out MSE and print the comparison.
   On a deadline, the interrupted stage reports its partial results.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import yaml

# ---------------------------------------------------------------------------
# Bootstrap logging before any local imports so module-level loggers work.
# ---------------------------------------------------------------------------


def _setup_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    fmt = fmt or "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO), format=fmt, force=True
    )


_setup_logging()  # default until config is loaded
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Local imports
# ---------------------------------------------------------------------------

import config as defaults
from src.control import CancellationToken
from src.data.dataset import Dataset, Split
from src.data.loader import DataIngestor
from src.data.partition import split
from src.data.quality import DataQualityChecker
from src.data.synthetic import make_sales_data
from src.evaluation.comparator import compare
from src.evaluation.metrics import compute_metrics, metrics_to_dataframe
from src.exceptions import SearchCancelled
from src.features.scaling import standardize_split
from src.models.fitter import LinearModelFitter
from src.models.neighbors import NearestNeighborRegressor
from src.selection.forward import ForwardSelector, trajectory_to_dataframe
from src.selection.subsets import FixedSubsetEvaluator
from src.tuning.knn_sweep import NeighborSweep, validate_k_grid
from src.tuning.records import EvaluationTable
from src.tuning.ridge_sweep import RidgeSweep, validate_penalty_grid


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------


def load_config(path: str = "configs/config.yaml") -> dict:
    """Load YAML configuration file.

    Args:
        path: Path to the YAML config file.

    Returns:
        Parsed configuration dictionary (empty sections become ``{}``).

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")
    with open(cfg_path) as f:
        return yaml.safe_load(f) or {}


def _section(cfg: dict, name: str) -> dict:
    return cfg.get(name) or {}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def run_pipeline(
    config_path: str = "configs/config.yaml",
    data_path: Optional[str] = None,
    synthetic: bool = False,
    n_jobs: Optional[int] = None,
    deadline: Optional[float] = None,
    target: Optional[str] = None,
) -> Dict[str, Any]:
    """Execute the full selection, tuning and comparison pipeline.

    Args:
        config_path: Path to the YAML configuration file.
        data_path: Override for the data path in the config.
        synthetic: Generate records with a known formula instead of
            loading a file.
        n_jobs: Override for the worker-thread count.
        deadline: Override for the search deadline in seconds.
        target: Override for the target column.

    Returns:
        Dict with keys ``split``, ``forward``, ``baseline``, ``subsets``,
        ``knn``, ``ridge``, ``comparison``, ``metrics`` and ``cancelled``.
        When the deadline fires, stages that did not finish are ``None``,
        ``cancelled`` holds the :class:`SearchCancelled` with the partial
        results, and the comparison covers the models that finished.
    """
    # ------------------------------------------------------------------ #
    # 0. Config                                                           #
    # ------------------------------------------------------------------ #
    cfg = load_config(config_path)
    log_cfg = _section(cfg, "logging")
    _setup_logging(level=log_cfg.get("level", "INFO"), fmt=log_cfg.get("format"))

    target_cfg = _section(cfg, "target")
    split_cfg = _section(cfg, "split")
    knn_cfg = _section(cfg, "knn")
    ridge_cfg = _section(cfg, "ridge")
    formula_cfg = _section(cfg, "formulas")
    par_cfg = _section(cfg, "parallel")

    target = target or target_cfg.get("column", defaults.TARGET)
    predictors: Optional[List[str]] = target_cfg.get("predictors")
    test_size = split_cfg.get("test_size", defaults.TEST_SIZE)
    seed = split_cfg.get("random_state", defaults.RANDOM_STATE)
    reuse_stats = _section(cfg, "scaling").get("reuse_train_stats", defaults.REUSE_TRAIN_STATS)
    k_grid = knn_cfg.get("k_grid", defaults.KNN_GRID)
    coarse_grid = ridge_cfg.get("coarse_grid", defaults.RIDGE_COARSE_GRID)
    refine_step = ridge_cfg.get("refine_step", defaults.RIDGE_REFINE_STEP)
    cv_folds = ridge_cfg.get("cv_folds", defaults.CV_FOLDS)
    baseline_formula = formula_cfg.get("baseline", defaults.BASELINE_FORMULA)
    candidate_formulas = formula_cfg.get("candidates", defaults.CANDIDATE_FORMULAS)
    n_jobs = n_jobs if n_jobs is not None else par_cfg.get("n_jobs", defaults.N_JOBS)
    deadline = deadline if deadline is not None else par_cfg.get("deadline")

    logger.info(
        "Pipeline config: target=%s | test_size=%.2f | seed=%d | k=%s | "
        "ridge grid=%s | folds=%d | n_jobs=%d",
        target,
        test_size,
        seed,
        k_grid,
        coarse_grid,
        cv_folds,
        n_jobs,
    )

    # ------------------------------------------------------------------ #
    # 1. Load                                                             #
    # ------------------------------------------------------------------ #
    if synthetic:
        syn_cfg = _section(cfg, "synthetic")
        df_raw = make_sales_data(
            n_rows=syn_cfg.get("n_rows", 100),
            seed=seed,
            noise_sd=syn_cfg.get("noise_sd", 5_000.0),
        )
    else:
        data_cfg = _section(cfg, "data")
        ingestor = DataIngestor(data_path or data_cfg.get("raw_path"))
        df_raw = ingestor.load(sheet_name=data_cfg.get("sheet_name", 0))

    # ------------------------------------------------------------------ #
    # 2. Quality checks + dataset                                         #
    # ------------------------------------------------------------------ #
    DataQualityChecker(target, predictors).run_all(df_raw)
    dataset = Dataset.from_frame(df_raw, target=target, predictors=predictors)

    # ------------------------------------------------------------------ #
    # 3. Split + fail-fast validation                                     #
    # ------------------------------------------------------------------ #
    data_split = split(dataset, test_size, seed)

    for formula in [baseline_formula, *candidate_formulas.values()]:
        dataset.require(formula)
    validate_k_grid(k_grid, data_split.train.n_rows)
    validate_penalty_grid(coarse_grid)

    # ------------------------------------------------------------------ #
    # 4. Standardize with training statistics                             #
    # ------------------------------------------------------------------ #
    scaled_split, _ = standardize_split(data_split, reuse_train_stats=reuse_stats)

    token = CancellationToken(deadline) if deadline else None
    fitter = LinearModelFitter()
    results: Dict[str, Any] = {
        "split": data_split,
        "forward": None,
        "baseline": None,
        "subsets": None,
        "knn": None,
        "ridge": None,
        "comparison": None,
        "metrics": None,
        "cancelled": None,
    }

    try:
        # -------------------------------------------------------------- #
        # 5. Forward selection                                            #
        # -------------------------------------------------------------- #
        logger.info("=" * 60)
        results["forward"] = ForwardSelector(fitter, n_jobs=n_jobs).run(data_split, token=token)

        # -------------------------------------------------------------- #
        # 6. Fixed formulas                                               #
        # -------------------------------------------------------------- #
        logger.info("=" * 60)
        evaluator = FixedSubsetEvaluator(fitter, n_jobs=n_jobs)
        results["baseline"] = evaluator.evaluate(data_split, {"baseline": baseline_formula})
        subsets = evaluator.evaluate(data_split, candidate_formulas)
        results["subsets"] = subsets
        subset = list(subsets.best_formula)
        logger.info("Best fixed formula '%s' → feature subset %s", subsets.best_name, subset)

        # -------------------------------------------------------------- #
        # 7. kNN sweep                                                    #
        # -------------------------------------------------------------- #
        logger.info("=" * 60)
        results["knn"] = NeighborSweep(k_grid, n_jobs=n_jobs).run(
            scaled_split, subset, token=token
        )

        # -------------------------------------------------------------- #
        # 8. Ridge sweep                                                  #
        # -------------------------------------------------------------- #
        logger.info("=" * 60)
        results["ridge"] = RidgeSweep(
            fitter,
            coarse_grid=coarse_grid,
            refine_step=refine_step,
            folds=cv_folds,
            seed=seed,
            n_jobs=n_jobs,
        ).run(scaled_split, subset, token=token)
    except SearchCancelled as exc:
        logger.warning(
            "Deadline reached during %s; reporting the stages that finished.", exc.stage
        )
        results["cancelled"] = exc

    # ------------------------------------------------------------------ #
    # 9. Comparison of the finished models                                #
    # ------------------------------------------------------------------ #
    finalists = _collect_finalists(results, scaled_split)
    if finalists:
        actual = data_split.test.target_values()
        results["comparison"] = compare({name: mse for name, (mse, _) in finalists.items()})
        results["metrics"] = metrics_to_dataframe(
            {
                name: compute_metrics(actual, preds, label=name)
                for name, (_, preds) in finalists.items()
            }
        )

    _print_summary(results)
    return results


def _collect_finalists(
    results: Dict[str, Any], scaled_split: Split
) -> Dict[str, Tuple[float, np.ndarray]]:
    """Map each finished model to its held-out MSE and test predictions.

    OLS models predict from raw features; kNN and ridge from the
    standardized split they were tuned on.
    """
    test = results["split"].test
    finalists: Dict[str, Tuple[float, np.ndarray]] = {}

    baseline = results["baseline"]
    if baseline is not None:
        finalists["baseline"] = (
            baseline.best_mse,
            baseline.fits[baseline.best_name].predict(test),
        )
    forward = results["forward"]
    if forward is not None:
        finalists["forward_selection"] = (forward.test_mse, forward.refit.predict(test))
    subsets = results["subsets"]
    if subsets is not None:
        finalists[f"best_fixed ({subsets.best_name})"] = (
            subsets.best_mse,
            subsets.fits[subsets.best_name].predict(test),
        )
    knn = results["knn"]
    if knn is not None:
        model = NearestNeighborRegressor(knn.best_value, list(subsets.best_formula))
        finalists[f"knn (k={knn.best_value})"] = (
            knn.best_mse,
            model.fit(scaled_split.train).predict(scaled_split.test),
        )
    ridge = results["ridge"]
    if ridge is not None:
        finalists[f"ridge (penalty={ridge.best_penalty:g})"] = (
            ridge.test_mse,
            ridge.fit.predict(scaled_split.test),
        )
    return finalists


def _partial_frame(exc: SearchCancelled) -> pd.DataFrame:
    if isinstance(exc.partial, EvaluationTable):
        return exc.partial.to_dataframe()
    return trajectory_to_dataframe(exc.partial or ())


def _print_summary(results: Dict[str, Any]) -> None:
    """Print the selection trajectory, sweep tables and model ranking.

    Stages that did not finish before the deadline are left out; the
    partial results of the interrupted stage are printed instead.

    Args:
        results: Dict returned by :func:`run_pipeline`.
    """
    sections = []
    if results["forward"] is not None:
        sections.append(("FORWARD SELECTION TRAJECTORY", results["forward"].trajectory_frame()))
    if results["subsets"] is not None:
        sections.append(
            ("FIXED FORMULAS (test MSE)", results["subsets"].table.to_dataframe("formula"))
        )
    if results["knn"] is not None:
        sections.append(("KNN SWEEP (test MSE)", results["knn"].table.to_dataframe("k")))
    if results["ridge"] is not None:
        sections.append(
            ("RIDGE COARSE SWEEP (CV MSE)", results["ridge"].coarse.to_dataframe("penalty"))
        )
    cancelled = results["cancelled"]
    if cancelled is not None:
        sections.append((f"PARTIAL {cancelled.stage.upper()}", _partial_frame(cancelled)))
    if results["comparison"] is not None:
        sections.append(("TEST METRICS", results["metrics"]))
        sections.append(("MODEL COMPARISON", results["comparison"].to_dataframe()))

    with pd.option_context("display.width", 120, "display.max_colwidth", 80):
        for title, frame in sections:
            logger.info("\n\n=== %s ===\n%s\n", title, frame.to_string())
            print(f"\n=== {title} ===")
            print(frame.to_string())

    if results["comparison"] is None:
        print("\nNo model finished before the deadline.")
        return
    best = results["comparison"].recommended
    print(f"\nRecommended model: {best.name} (MSE={best.mse:.4g})")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sale-price model selection and hyperparameter search."
    )
    parser.add_argument(
        "--config",
        default="configs/config.yaml",
        help="Path to YAML config (default: configs/config.yaml).",
    )
    parser.add_argument(
        "--data",
        default=None,
        help="Override data path from config.",
    )
    parser.add_argument(
        "--target",
        default=None,
        help="Override the target column from config.",
    )
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Use generated records with a known linear formula.",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        default=None,
        help="Worker threads for independent fits (default: from config).",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Abort the searches after this many seconds.",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    run_pipeline(
        config_path=args.config,
        data_path=args.data,
        synthetic=args.synthetic,
        n_jobs=args.n_jobs,
        deadline=args.deadline,
        target=args.target,
    )
