import os
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .association import AssociationReport
from .comparison import VariantOutcome, comparison_table
from .utils.logger import get_logger


class Reporter:
    """Write screening and comparison results to disk as tables and figures."""

    def __init__(self, output_dir: str = "artifacts", verbose: bool = True):
        self.output_dir = output_dir
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        os.makedirs(self.output_dir, exist_ok=True)

    def _path(self, filename: str) -> str:
        return os.path.join(self.output_dir, filename)

    def _saved(self, what: str, path: str) -> str:
        if self.verbose:
            self.logger.info(f"Saved {what}: {path}")
        return path

    def save_association(self, report: AssociationReport, filename: str = "associations.csv") -> str:
        path = self._path(filename)
        report.to_frame().to_csv(path, index=False)
        return self._saved("association report", path)

    def save_comparison(self, outcomes: Sequence[VariantOutcome], stem: str = "comparison") -> tuple[str, str]:
        table = comparison_table(outcomes)
        csv_path = self._path(f"{stem}.csv")
        json_path = self._path(f"{stem}.json")
        table.to_csv(csv_path, index=False)
        table.to_json(json_path, orient="records", indent=4)
        self._saved("comparison table", csv_path)
        return csv_path, json_path

    def plot_association_heatmap(
        self,
        report: AssociationReport,
        columns: Optional[Sequence[str]] = None,
        filename: str = "association_heatmap.png",
    ) -> str:
        matrix = report.matrix(columns)

        size = max(6, 0.6 * len(matrix))
        plt.figure(figsize=(size, size * 0.85))
        sns.heatmap(matrix, annot=True, fmt=".2f", cmap="Blues", vmin=0.0, vmax=1.0, square=True)
        plt.title("Cramér's V")

        path = self._path(filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        return self._saved("association heatmap", path)

    def plot_comparison(self, outcomes: Sequence[VariantOutcome], filename: str = "comparison.png") -> str:
        table = comparison_table(outcomes)
        evaluated = table[table["status"] == "evaluated"]
        long = evaluated.melt(
            id_vars="model",
            value_vars=["sensitivity", "specificity", "balanced_accuracy"],
            var_name="metric",
            value_name="score",
        )

        plt.figure(figsize=(max(7, 1.2 * len(evaluated)), 5))
        sns.barplot(data=long, x="model", y="score", hue="metric")
        plt.ylim(0, 1)
        plt.xticks(rotation=30, ha="right")
        plt.title("Model Variant Comparison")

        path = self._path(filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        return self._saved("comparison plot", path)

    def plot_threshold_sweep(
        self,
        sweep: pd.DataFrame,
        best_threshold: Optional[float] = None,
        filename: str = "threshold_sweep.png",
    ) -> str:
        plt.figure(figsize=(7, 5))
        sns.lineplot(x=sweep["threshold"], y=sweep["sensitivity"], label="Sensitivity")
        sns.lineplot(x=sweep["threshold"], y=sweep["specificity"], label="Specificity")
        sns.lineplot(x=sweep["threshold"], y=sweep["balanced_accuracy"], label="Balanced accuracy")
        if best_threshold is not None:
            plt.axvline(best_threshold, linestyle="--", label=f"Best thr={best_threshold:.2f}")
        plt.xlabel("P(negative) threshold")
        plt.ylabel("Score")
        plt.title("Threshold Sweep")
        plt.legend()

        path = self._path(filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        return self._saved("threshold sweep plot", path)
