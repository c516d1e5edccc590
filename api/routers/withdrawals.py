"""
Withdrawal endpoints: POST /withdraw/{strategyId}, one route per strategy.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_service
from api.schemas import WithdrawRequest
from withdrawal_engine.service import WithdrawalService
from withdrawal_engine.strategies import STRATEGY_IDS

router = APIRouter(prefix="/withdraw", tags=["Withdrawals"])


def _make_handler(strategy_id: str):
    async def withdraw(
        body: Optional[WithdrawRequest] = Body(None),
        service: WithdrawalService = Depends(get_service),
    ) -> JSONResponse:
        body = body or WithdrawRequest()
        response = await service.withdraw(
            strategy_id,
            amount=body.amount,
            destination=body.destination,
            aux_destination=body.aux_destination,
        )
        return JSONResponse(status_code=response.status_code, content=response.body)

    withdraw.__doc__ = f"Withdraw treasury funds using the {strategy_id} strategy."
    return withdraw


for _strategy_id in STRATEGY_IDS:
    router.add_api_route(
        f"/{_strategy_id}",
        _make_handler(_strategy_id),
        methods=["POST"],
        name=f"withdraw_{_strategy_id.replace('-', '_')}",
    )
