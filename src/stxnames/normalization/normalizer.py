"""Envelope normalization: upstream payloads → `NormalizedEvent` stream.

This module provides:
- `normalize(envelope)`: lazily flattens a webhook envelope into canonical
  events, one per successful register/transfer/release operation.
- `normalize_transaction(tx)`: the same for one poll-mode API transaction.

Operation shapes
----------------
An operation is either *structured* (a `contract_call` with typed
`function_args`) or *raw* (a `metadata` object with a hex `args` blob).
Structured arguments go through `decode_typed`; raw blobs only expose the
username through `decode_from_blob`, so a raw transfer (which also needs a
principal) cannot be decoded and is skipped.

Skips never raise: failed calls and foreign functions are dropped silently,
undecodable operations are dropped with a warning, and processing moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from stxnames.core.models import (
    EventKind,
    NormalizedEvent,
    RegisterEvent,
    ReleaseEvent,
    TransferEvent,
)
from stxnames.decoding.clarity import (
    decode_from_blob,
    decode_principal,
    decode_typed,
    hex_to_bytes,
    is_valid_username,
)
from stxnames.normalization.envelope import (
    ApiTransaction,
    Envelope,
    FunctionArg,
    Operation,
    Transaction,
)

logger = logging.getLogger(__name__)

SUCCESS = "success"


# ---------- operation views ----------


@dataclass(slots=True, frozen=True)
class StructuredCall:
    """Operation carrying pre-decoded `{type, repr}` arguments."""

    function_name: str | None
    contract_identifier: str | None
    args: Sequence[FunctionArg]


@dataclass(slots=True, frozen=True)
class RawArgsCall:
    """Operation carrying only a serialized argument blob."""

    function_name: str | None
    contract_identifier: str | None
    blob: bytes | None


OperationCall = StructuredCall | RawArgsCall


def operation_call(op: Operation) -> OperationCall | None:
    """Pick the shape an operation arrived in (structured wins)."""
    if op.contract_call is not None:
        cc = op.contract_call
        return StructuredCall(cc.function_name, cc.contract_identifier, cc.function_args)
    if op.metadata is not None:
        md = op.metadata
        return RawArgsCall(md.function_name, md.contract_identifier, hex_to_bytes(md.args))
    return None


@dataclass(slots=True, frozen=True)
class DecodedArgs:
    username: str | None
    new_owner: str | None = None


def _arg(args: Sequence[FunctionArg], i: int) -> FunctionArg | None:
    return args[i] if i < len(args) else None


def decode_call_args(call: OperationCall, kind: EventKind) -> DecodedArgs:
    """Extract `(username, new_owner)` from either operation shape."""
    match call:
        case StructuredCall():
            first = _arg(call.args, 0)
            username = decode_typed(first.repr, first.type) if first else None
            new_owner = None
            if kind is EventKind.TRANSFER:
                second = _arg(call.args, 1)
                new_owner = decode_typed(second.repr, second.type or "principal") if second else None
            return DecodedArgs(username, new_owner)
        case RawArgsCall():
            return DecodedArgs(decode_from_blob(call.blob))
    raise RuntimeError("Unsupported operation call shape")


def _is_success(op: Operation, tx: Transaction) -> bool:
    status = op.status or (op.metadata.status if op.metadata else None)
    if status is not None:
        return status.lower() == SUCCESS
    md = tx.metadata
    if md is not None:
        if md.success is not None:
            return md.success
        if md.status is not None:
            return md.status.lower() == SUCCESS
    return False


def _tx_sender(tx: Transaction) -> str | None:
    md = tx.metadata
    raw = (md.sender or md.sender_address) if md else None
    return decode_principal(raw or tx.sender)


def build_event(
    *,
    kind: EventKind,
    tx_id: str,
    block_height: int,
    timestamp: int,
    sender: str | None,
    args: DecodedArgs,
) -> NormalizedEvent | None:
    """Assemble one event, or None (with a warning) if a field is missing."""
    fn = kind.function_name
    if not is_valid_username(args.username):
        logger.warning("skip %s tx=%s: could not decode username (got %r)", fn, tx_id, args.username)
        return None
    if not sender:
        logger.warning("skip %s tx=%s: missing sender for %s", fn, tx_id, args.username)
        return None

    common = dict(
        tx_id=tx_id,
        block_height=block_height,
        timestamp=timestamp,
        sender=sender,
        username=args.username,
    )
    match kind:
        case EventKind.REGISTER:
            return RegisterEvent(**common)
        case EventKind.TRANSFER:
            if not args.new_owner:
                logger.warning("skip %s tx=%s: could not decode new owner for %s", fn, tx_id, args.username)
                return None
            return TransferEvent(**common, new_owner=args.new_owner)
        case EventKind.RELEASE:
            return ReleaseEvent(**common)
    raise RuntimeError(f"Unsupported event kind {kind!r}")


def _foreign_contract(call: OperationCall, contract_id: str | None) -> bool:
    return bool(contract_id and call.contract_identifier and call.contract_identifier != contract_id)


# ---------- webhook envelopes ----------


def normalize(envelope: Envelope, *, contract_id: str | None = None) -> Iterator[NormalizedEvent]:
    """Yield canonical events from one envelope, in upstream order.

    Parameters
    ----------
    envelope : Envelope
        Validated webhook envelope.
    contract_id : str | None
        When set, operations explicitly naming another contract are ignored.
    """
    if envelope.rollback:
        logger.warning("envelope carries %d rollback block(s); rollbacks are not applied", len(envelope.rollback))

    for block in envelope.apply:
        if block.block_identifier is None or block.block_identifier.index is None or block.timestamp is None:
            logger.warning("skip apply block without block height/timestamp")
            continue
        block_height = block.block_identifier.index
        timestamp = block.timestamp // 1000  # ms -> s

        for tx in block.transactions:
            tx_id = tx.tx_id
            if not tx_id:
                logger.warning("skip transaction without identifier in block %d", block_height)
                continue

            for op in tx.operations:
                call = operation_call(op)
                if call is None:
                    continue
                kind = EventKind.from_function_name(call.function_name)
                if kind is None or not _is_success(op, tx) or _foreign_contract(call, contract_id):
                    continue

                event = build_event(
                    kind=kind,
                    tx_id=tx_id,
                    block_height=block_height,
                    timestamp=timestamp,
                    sender=_tx_sender(tx),
                    args=decode_call_args(call, kind),
                )
                if event is not None:
                    yield event


# ---------- poll-mode transactions ----------


def is_candidate(tx: ApiTransaction, *, contract_id: str | None = None) -> bool:
    """Successful call to one of the three recognized functions."""
    if tx.tx_status != SUCCESS or tx.contract_call is None:
        return False
    if EventKind.from_function_name(tx.function_name) is None:
        return False
    cc_contract = tx.contract_call.contract_id
    return not (contract_id and cc_contract and cc_contract != contract_id)


def normalize_transaction(tx: ApiTransaction, *, contract_id: str | None = None) -> NormalizedEvent | None:
    """Convert one listed transaction into an event (None when skipped)."""
    if not is_candidate(tx, contract_id=contract_id):
        return None
    kind = EventKind.from_function_name(tx.function_name)
    if not tx.tx_id:
        logger.warning("skip %s call without tx_id", tx.function_name)
        return None
    if tx.block_height is None or tx.burn_block_time is None:
        logger.warning("skip %s tx=%s: missing block height or time", tx.function_name, tx.tx_id)
        return None

    call = StructuredCall(tx.function_name, tx.contract_call.contract_id, tx.contract_call.function_args)
    return build_event(
        kind=kind,
        tx_id=tx.tx_id,
        block_height=tx.block_height,
        timestamp=tx.burn_block_time,
        sender=decode_principal(tx.sender_address),
        args=decode_call_args(call, kind),
    )
