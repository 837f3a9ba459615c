"""
Batch Processor
===============

Score many reference/degraded pairs with one configured manager.

Features:
- Pair list from CSV (columns: reference, degraded)
- Optional thread pool across pairs with progress bar
- Per-pair failure recording (no score is ever substituted)
- CSV results and JSON summary output
"""

import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from tqdm import tqdm

from .errors import VisqolError
from .manager import VisqolManager
from .results import SimilarityResult

logger = logging.getLogger(__name__)


@dataclass
class PairJob:
    """Single reference/degraded pair"""
    reference_path: str
    degraded_path: str

    def to_dict(self) -> Dict:
        return {
            "reference_path": self.reference_path,
            "degraded_path": self.degraded_path,
        }


@dataclass
class PairResult:
    """Result of scoring one pair"""
    job: PairJob
    result: Optional[SimilarityResult] = None
    success: bool = False
    error_type: Optional[str] = None
    error: Optional[str] = None
    processing_time_sec: float = 0.0

    def to_csv_row(self) -> Dict:
        """Flatten result for CSV export"""
        row = {
            "reference": os.path.basename(self.job.reference_path),
            "degraded": os.path.basename(self.job.degraded_path),
            "moslqo": self.result.moslqo if self.result else None,
            "vnsim": self.result.vnsim if self.result else None,
            "num_patches": self.result.num_patches if self.result else None,
            "alignment_lag": self.result.alignment_lag if self.result else None,
            "alignment_lag_seconds": self.result.alignment_lag_seconds if self.result else None,
            "success": self.success,
            "error_type": self.error_type,
            "error": self.error,
            "processing_time_sec": self.processing_time_sec,
        }
        return row


def read_pairs_csv(path: str) -> List[PairJob]:
    """
    Read a pair list.

    Args:
        path: CSV file with ``reference`` and ``degraded`` columns; relative
            paths are resolved against the CSV's directory

    Returns:
        List of PairJob in file order
    """
    df = pd.read_csv(path)
    missing = {"reference", "degraded"} - set(df.columns)
    if missing:
        raise ValueError(f"Pair list {path} lacks columns: {sorted(missing)}")

    base = Path(path).parent
    jobs = []
    for ref, deg in zip(df["reference"], df["degraded"]):
        jobs.append(PairJob(
            reference_path=str(base / ref),
            degraded_path=str(base / deg),
        ))

    logger.info(f"Read {len(jobs)} pairs from {path}")
    return jobs


def process_single_pair(manager: VisqolManager, job: PairJob) -> PairResult:
    """
    Score one pair, recording pipeline failures on the result.

    Args:
        manager: Configured manager
        job: Pair to score

    Returns:
        PairResult
    """
    start_time = time.time()
    pair_result = PairResult(job=job)

    try:
        pair_result.result = manager.run(job.reference_path, job.degraded_path)
        pair_result.success = True
    except VisqolError as e:
        pair_result.error_type = type(e).__name__
        pair_result.error = str(e)
        logger.error(f"Processing failed for {job.degraded_path}: {e}")

    pair_result.processing_time_sec = time.time() - start_time
    return pair_result


class BatchProcessor:
    """
    Batch scoring of pairs.

    Usage:
        processor = BatchProcessor(manager, n_workers=4)
        df = processor.run(read_pairs_csv("pairs.csv"), output_dir="results/")
    """

    def __init__(self, manager: VisqolManager, n_workers: int = 1):
        self.manager = manager
        self.n_workers = max(1, int(n_workers))
        self.results: List[PairResult] = []

    def process_pairs(self, jobs: List[PairJob],
                      show_progress: bool = True) -> List[PairResult]:
        """
        Score every pair.

        Returns:
            PairResult list in job order
        """
        if self.n_workers == 1:
            iterator = tqdm(jobs, desc="Scoring") if show_progress else jobs
            self.results = [process_single_pair(self.manager, job) for job in iterator]
            return self.results

        results: List[PairResult] = [None] * len(jobs)
        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            future_to_index = {
                executor.submit(process_single_pair, self.manager, job): idx
                for idx, job in enumerate(jobs)
            }

            iterator = as_completed(future_to_index)
            if show_progress:
                iterator = tqdm(iterator, total=len(jobs), desc="Scoring")

            for future in iterator:
                results[future_to_index[future]] = future.result()

        self.results = results
        return results

    def to_dataframe(self) -> pd.DataFrame:
        """Convert results to pandas DataFrame"""
        return pd.DataFrame([r.to_csv_row() for r in self.results])

    def compute_summary(self, df: pd.DataFrame) -> Dict:
        """
        Compute summary statistics from results.
        """
        if df.empty:
            return {"total_pairs": 0, "successful": 0, "failed": 0}

        summary = {
            "total_pairs": len(df),
            "successful": int(df["success"].sum()),
            "failed": int((~df["success"].astype(bool)).sum()),
        }

        if "moslqo" in df.columns:
            valid = df["moslqo"].dropna()
            if len(valid) > 0:
                summary["moslqo_mean"] = float(valid.mean())
                summary["moslqo_std"] = float(valid.std()) if len(valid) > 1 else 0.0
                summary["moslqo_min"] = float(valid.min())
                summary["moslqo_max"] = float(valid.max())
                summary["moslqo_median"] = float(valid.median())

        if "error_type" in df.columns:
            errors = df["error_type"].dropna()
            summary["errors_by_type"] = {k: int(v) for k, v in errors.value_counts().items()}

        return summary

    def save_results(self, df: pd.DataFrame, output_dir: str) -> Dict[str, str]:
        """
        Save results CSV and summary JSON.

        Returns:
            Mapping of output kind to written path
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        csv_path = output_path / f"visqol_results_{timestamp}.csv"
        df.to_csv(csv_path, index=False)
        logger.info(f"Saved CSV: {csv_path}")

        summary = self.compute_summary(df)
        summary["config_hash"] = self.manager.config.config_hash
        summary["config_version"] = self.manager.config.CONFIG_VERSION
        summary_path = output_path / f"summary_statistics_{timestamp}.json"
        with open(summary_path, "w") as f:
            json.dump(summary, f, indent=2, default=str)
        logger.info(f"Saved summary: {summary_path}")

        return {"csv": str(csv_path), "summary": str(summary_path)}

    def run(self, jobs: List[PairJob],
            output_dir: str = None,
            show_progress: bool = True) -> pd.DataFrame:
        """
        Score pairs and optionally save outputs.

        Returns:
            DataFrame with one row per pair
        """
        start_time = time.time()
        logger.info(f"Scoring {len(jobs)} pairs with {self.n_workers} workers")

        self.process_pairs(jobs, show_progress=show_progress)
        df = self.to_dataframe()

        if output_dir:
            self.save_results(df, output_dir)

        successful = sum(1 for r in self.results if r.success)
        logger.info(
            f"Batch complete: {successful}/{len(self.results)} successful "
            f"in {time.time() - start_time:.1f}s"
        )
        return df
