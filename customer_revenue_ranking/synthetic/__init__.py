"""Synthetic purchase data generation.

This package produces realistic-but-fake datasets to exercise the revenue
ranking pipeline without accessing production data.
"""

from .generator import DatasetConfig, PurchaseDataset, generate_purchase_dataset

__all__ = [
    "DatasetConfig",
    "PurchaseDataset",
    "generate_purchase_dataset",
]
