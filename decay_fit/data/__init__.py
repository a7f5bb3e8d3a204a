"""Measurement records and the embedded decay dataset."""

from decay_fit.data.dataset import DataPoint, Dataset, DEFAULT_DATASET

__all__ = [
    "DataPoint",
    "Dataset",
    "DEFAULT_DATASET",
]
