"""
Pydantic schemas for the Treasury API requests.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Left untyped so the service validators see the raw JSON values; lax
# coercion would turn `true` into 1
RawAmount = Any


class WithdrawRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: RawAmount = Field(None, alias="amountETH")
    destination: Any = None
    aux_destination: Any = Field(None, alias="auxDestination")


class CreditRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: RawAmount = Field(None, alias="amountUSD")
