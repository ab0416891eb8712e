# ABOUTME: Defines evaluation helpers for the leveling classifier.
# ABOUTME: Computes holdout metrics like accuracy and macro F1 over outcome labels.

from typing import Iterable, Mapping

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, f1_score


def evaluate_outcome_predictions(predictions: pd.DataFrame, metrics: Iterable[str]) -> Mapping[str, float]:
    """
    Evaluate an outcome-predictions dataframe using the requested metric names.

    Parameters
    ----------
    predictions : pd.DataFrame
        Expected columns: ['y_true', 'y_pred'] holding outcome labels.
    metrics : Iterable[str]
        Metric identifiers such as 'accuracy', 'macro_f1', 'promote_rate'.
    """

    metrics = list(metrics)
    if predictions is None or len(predictions) == 0:
        return {metric: np.nan for metric in metrics}

    y_true = predictions["y_true"].astype(str)
    y_pred = predictions["y_pred"].astype(str)

    results = {}
    for metric in metrics:
        if metric == "accuracy":
            results[metric] = float(accuracy_score(y_true, y_pred))
        elif metric == "macro_f1":
            results[metric] = float(f1_score(y_true, y_pred, average="macro", zero_division=0))
        elif metric == "promote_rate":
            results[metric] = float((y_pred == "promote").mean())
        else:
            raise ValueError(f"Unsupported metric '{metric}'.")

    return results
