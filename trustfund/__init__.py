"""TrustFund crowdfunding service: campaign registry and donation ledger."""

__version__ = "1.0.0"
