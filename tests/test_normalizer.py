import inspect
import logging

import pytest

from stxnames.core.models import EventKind, RegisterEvent, ReleaseEvent, TransferEvent
from stxnames.normalization.envelope import ApiTransaction, Envelope
from stxnames.normalization.normalizer import is_candidate, normalize, normalize_transaction

from payloads import (
    ALICE,
    BOB,
    CONTRACT_ID,
    api_tx,
    block,
    encode_username_blob,
    envelope,
    principal_arg,
    raw_op,
    register_tx,
    release_tx,
    string_arg,
    structured_op,
    transaction,
    transfer_tx,
)


def _events(payload, **kwargs):
    return list(normalize(Envelope.model_validate(payload), **kwargs))


def test_structured_register() -> None:
    payload = envelope(block(100, register_tx("alice", ALICE, "0xt1"), timestamp_ms=1_700_000_123_456))

    [ev] = _events(payload)

    assert isinstance(ev, RegisterEvent)
    assert ev.kind is EventKind.REGISTER
    assert ev.username == "alice"
    assert ev.sender == ALICE
    assert ev.tx_id == "0xt1"
    assert ev.block_height == 100
    assert ev.timestamp == 1_700_000_123  # ms truncated to seconds


def test_structured_transfer_and_release() -> None:
    payload = envelope(
        block(101, transfer_tx("alice", ALICE, BOB, "0xt2")),
        block(102, release_tx("alice", BOB, "0xt3")),
    )

    transfer, release = _events(payload)

    assert isinstance(transfer, TransferEvent)
    assert transfer.new_owner == BOB
    assert transfer.block_height == 101
    assert isinstance(release, ReleaseEvent)
    assert release.sender == BOB
    assert release.block_height == 102


def test_normalize_is_lazy() -> None:
    result = normalize(Envelope.model_validate(envelope(block(100, register_tx("alice", ALICE, "0xt1")))))
    assert inspect.isgenerator(result)


def test_failed_and_foreign_operations_are_skipped() -> None:
    payload = envelope(
        block(
            100,
            transaction("0xf1", ALICE, structured_op("register-username", [string_arg("alice")], status="abort_by_response")),
            transaction("0xf2", ALICE, structured_op("set-fee", [string_arg("alice")])),
            transaction("0xf3", ALICE, {"type": "token_transfer", "status": "success"}),
            register_tx("bob", BOB, "0xok"),
        )
    )

    events = _events(payload)

    assert [e.tx_id for e in events] == ["0xok"]


def test_raw_args_register_uses_blob_and_sender_address() -> None:
    tx = transaction(
        "0xraw",
        f"{ALICE}.some-contract",
        raw_op("register-username", encode_username_blob("heyy")),
        sender_key="sender_address",
    )

    [ev] = _events(envelope(block(100, tx)))

    assert isinstance(ev, RegisterEvent)
    assert ev.username == "heyy"
    assert ev.sender == ALICE


def test_raw_args_transfer_cannot_decode_new_owner(caplog: pytest.LogCaptureFixture) -> None:
    tx = transaction("0xraw", ALICE, raw_op("transfer-username", encode_username_blob("heyy")))

    with caplog.at_level(logging.WARNING, logger="stxnames"):
        events = _events(envelope(block(100, tx)))

    assert events == []
    assert "could not decode new owner" in caplog.text


def test_bad_operation_does_not_abort_envelope(caplog: pytest.LogCaptureFixture) -> None:
    payload = envelope(
        block(
            100,
            transaction("0xbad1", ALICE, structured_op("register-username", [])),
            transaction("0xbad2", ALICE, structured_op("register-username", [string_arg("NOT VALID")])),
            transaction("0xbad3", ALICE, raw_op("register-username", b"\xff" * 16)),
            register_tx("carol", ALICE, "0xgood"),
        )
    )

    with caplog.at_level(logging.WARNING, logger="stxnames"):
        events = _events(payload)

    assert [e.tx_id for e in events] == ["0xgood"]
    assert caplog.text.count("could not decode username") == 3


def test_missing_sender_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    tx = {
        "transaction_identifier": {"hash": "0xnosender"},
        "operations": [structured_op("register-username", [string_arg("alice")])],
    }
    with caplog.at_level(logging.WARNING, logger="stxnames"):
        assert _events(envelope(block(100, tx))) == []
    assert "missing sender" in caplog.text


def test_status_falls_back_to_transaction_metadata() -> None:
    op = structured_op("register-username", [string_arg("alice")])
    del op["status"]
    tx = {
        "transaction_identifier": {"hash": "0xt1"},
        "metadata": {"sender": ALICE, "success": True},
        "operations": [op],
    }
    failed = {**tx, "transaction_identifier": {"hash": "0xt2"}, "metadata": {"sender": ALICE, "success": False}}

    events = _events(envelope(block(100, tx, failed)))

    assert [e.tx_id for e in events] == ["0xt1"]


def test_contract_filter() -> None:
    other = transaction(
        "0xother",
        ALICE,
        structured_op("register-username", [string_arg("alice")], contract="SP000000000000000000002Q6VF78.other"),
    )
    payload = envelope(block(100, other, register_tx("bob", BOB, "0xours")))

    assert [e.tx_id for e in _events(payload, contract_id=CONTRACT_ID)] == ["0xours"]
    assert len(_events(payload)) == 2


def test_block_without_identifier_is_skipped() -> None:
    payload = {"apply": [{"timestamp": 1, "transactions": [register_tx("alice", ALICE, "0xt1")]}]}
    assert _events(payload) == []


def test_rollback_is_logged_not_applied(caplog: pytest.LogCaptureFixture) -> None:
    payload = envelope(rollback=[block(99, register_tx("alice", ALICE, "0xold"))])
    with caplog.at_level(logging.WARNING, logger="stxnames"):
        assert _events(payload) == []
    assert "rollback" in caplog.text


# ---- poll-mode transactions ----


def test_normalize_transaction_register() -> None:
    tx = ApiTransaction.model_validate(
        api_tx("0xp1", "register-username", [string_arg("alice")], block_height=100, burn_block_time=1_700_000_000)
    )

    ev = normalize_transaction(tx, contract_id=CONTRACT_ID)

    assert isinstance(ev, RegisterEvent)
    assert (ev.username, ev.sender, ev.block_height, ev.timestamp) == ("alice", ALICE, 100, 1_700_000_000)


def test_normalize_transaction_transfer() -> None:
    tx = ApiTransaction.model_validate(
        api_tx("0xp2", "transfer-username", [string_arg("alice"), principal_arg(BOB)])
    )

    ev = normalize_transaction(tx)

    assert isinstance(ev, TransferEvent)
    assert ev.new_owner == BOB


def test_normalize_transaction_skips() -> None:
    failed = ApiTransaction.model_validate(
        api_tx("0xp3", "register-username", [string_arg("alice")], status="abort_by_post_condition")
    )
    other_fn = ApiTransaction.model_validate(api_tx("0xp4", "set-fee", []))
    no_height = ApiTransaction.model_validate(
        {**api_tx("0xp5", "register-username", [string_arg("alice")]), "block_height": None}
    )

    assert not is_candidate(failed)
    assert not is_candidate(other_fn)
    assert normalize_transaction(failed) is None
    assert normalize_transaction(other_fn) is None
    assert normalize_transaction(no_height) is None


def test_missing_identifiers_skip_only_their_block_or_transaction(caplog: pytest.LogCaptureFixture) -> None:
    payload = envelope(
        {"timestamp": 1_700_000_000_000, "block_identifier": {}, "transactions": [register_tx("bob", BOB, "0xb")]},
        block(100, {"transaction_identifier": {}, "operations": []}, register_tx("alice", ALICE, "0xt1")),
    )

    with caplog.at_level(logging.WARNING, logger="stxnames"):
        events = _events(payload)

    assert [e.tx_id for e in events] == ["0xt1"]
    assert "without block height" in caplog.text
    assert "without identifier" in caplog.text


def test_normalize_transaction_without_tx_id() -> None:
    raw = api_tx("ignored", "register-username", [string_arg("alice")])
    del raw["tx_id"]

    assert normalize_transaction(ApiTransaction.model_validate(raw)) is None
