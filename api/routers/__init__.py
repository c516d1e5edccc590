"""
Treasury API Routers.
"""
from . import treasury, withdrawals

__all__ = ["treasury", "withdrawals"]
