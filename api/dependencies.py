"""
Shared FastAPI dependencies.
"""
from fastapi import Request

from withdrawal_engine.service import WithdrawalService


def get_service(request: Request) -> WithdrawalService:
    return request.app.state.service
