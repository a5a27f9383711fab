"""SellerOps Sync - marketplace order reconciliation and product mapping."""

__version__ = "1.0.0"
