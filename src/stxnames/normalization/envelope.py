"""Pydantic models for the upstream payloads.

Two sources feed the pipeline:
- webhook envelopes (`Envelope`): apply blocks -> transactions -> operations,
  where an operation carries either a structured `contract_call` or a
  `metadata` object with a hex `args` blob;
- the indexing API's transaction listing (`ApiTransactionsPage`).

Every model is lenient (unknown keys kept, almost everything optional):
the delivery schema is not stable, and a missing field must only cost the
single operation that needed it.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Loose(BaseModel):
    model_config = ConfigDict(extra="allow")


# ---- shared ----


class FunctionArg(_Loose):
    type: str = ""
    repr: str | None = None
    hex: str | None = None
    name: str | None = None


# ---- webhook envelope ----


class ContractCall(_Loose):
    contract_identifier: str | None = None
    function_name: str | None = None
    function_args: list[FunctionArg] = Field(default_factory=list)


class OperationMetadata(_Loose):
    contract_identifier: str | None = None
    function_name: str | None = None
    args: str | None = None  # hex-encoded serialized arguments
    status: str | None = None


class Operation(_Loose):
    type: str | None = None
    status: str | None = None
    contract_call: ContractCall | None = None
    metadata: OperationMetadata | None = None


class TransactionIdentifier(_Loose):
    hash: str | None = None


class TransactionMetadata(_Loose):
    sender: str | None = None
    sender_address: str | None = None
    success: bool | None = None
    status: str | None = None


class Transaction(_Loose):
    transaction_identifier: TransactionIdentifier | None = None
    metadata: TransactionMetadata | None = None
    operations: list[Operation] = Field(default_factory=list)
    sender: str | None = None

    @property
    def tx_id(self) -> str | None:
        return self.transaction_identifier.hash if self.transaction_identifier else None


class BlockIdentifier(_Loose):
    index: int | None = None
    hash: str | None = None


class ApplyBlock(_Loose):
    block_identifier: BlockIdentifier | None = None
    timestamp: int | None = None  # milliseconds
    transactions: list[Transaction] = Field(default_factory=list)


class Envelope(_Loose):
    apply: list[ApplyBlock] = Field(default_factory=list)
    rollback: list[Any] = Field(default_factory=list)


# ---- indexing API (poll mode) ----


class ApiContractCall(_Loose):
    contract_id: str | None = None
    function_name: str | None = None
    function_args: list[FunctionArg] = Field(default_factory=list)


class ApiTransaction(_Loose):
    tx_id: str | None = None
    tx_status: str = ""
    block_height: int | None = None
    burn_block_time: int | None = None  # seconds
    sender_address: str | None = None
    contract_call: ApiContractCall | None = None

    @property
    def function_name(self) -> str | None:
        return self.contract_call.function_name if self.contract_call else None


class ApiTransactionsPage(_Loose):
    limit: int | None = None
    offset: int | None = None
    total: int | None = None
    results: list[Any] = Field(default_factory=list)  # items validated one by one
