"""
Treasury endpoints: liveness, status and earnings credit.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_service
from api.schemas import CreditRequest
from withdrawal_engine.service import WithdrawalService

router = APIRouter(tags=["Treasury"])


@router.get("/")
def root(service: WithdrawalService = Depends(get_service)):
    return service.liveness()


@router.get("/status")
async def get_status(service: WithdrawalService = Depends(get_service)):
    """
    Treasury wallet, balance, accounting totals and active endpoints.
    """
    return await service.status()


@router.post("/credit")
def credit_earnings(
    body: Optional[CreditRequest] = Body(None),
    service: WithdrawalService = Depends(get_service),
) -> JSONResponse:
    """
    Record earnings (USD) that later withdrawals draw down.
    """
    body = body or CreditRequest()
    response = service.credit(body.amount)
    return JSONResponse(status_code=response.status_code, content=response.body)
