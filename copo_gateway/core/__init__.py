"""
Core domain models - Export all models for Alembic
"""

from copo_gateway.core.transactions.models import Transaction

__all__ = ["Transaction"]
