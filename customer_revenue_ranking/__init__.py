"""Customer revenue ranking toolkit.

Aggregates purchase events into per-customer revenue, selects the top
revenue quantile and exports the ranked customers to a dated table.
"""

__version__ = "1.0.0"
