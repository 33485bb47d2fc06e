"""Tests for CogniAction log decoding and the receipt fetcher.

Logs are built with eth_abi.encode exactly as the contract would emit them.
The fetcher runs against a fake web3 eth client; no RPC endpoint is used.
"""

import pytest
from eth_abi import encode
from eth_utils import keccak, to_bytes
from web3.exceptions import TransactionNotFound

from schemas.signal import Action, Target, Vcs
from signals.decoder import (
    COGNI_TOPIC0,
    EXTRA_FALLBACK_TTL_SECONDS,
    decode_cogni_log,
    decode_extra,
    infer_vcs,
    is_cogni_log,
)
from signals.fetcher import ReceiptSignalFetcher

DAO = "0x" + "ab" * 20
EXECUTOR = "0x" + "cd" * 20
CONTRACT = "0x" + "ef" * 20
OTHER_CONTRACT = "0x" + "12" * 20
BLOCK_TS = 1_750_000_000
TX = "0x" + "9" * 64


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_extra(nonce=3, deadline=1_900_000_000, params_json='{"merge_method": "squash"}') -> bytes:
    return encode(["uint256", "uint64", "string"], [nonce, deadline, params_json])


def make_log(
    repo_url="https://github.com/cogni-dao/test-repo",
    action="merge",
    target="change",
    resource="5",
    extra=None,
    chain_id=11155111,
    address=CONTRACT,
    topic0=COGNI_TOPIC0,
) -> dict:
    """A receipt log shaped like web3's AttributeDict output."""
    return {
        "address": address,
        "logIndex": 0,
        "topics": [
            to_bytes(hexstr=topic0),
            encode(["address"], [DAO]),
            encode(["uint256"], [chain_id]),
            encode(["address"], [EXECUTOR]),
        ],
        "data": encode(
            ["string", "string", "string", "string", "bytes"],
            [repo_url, action, target, resource, make_extra() if extra is None else extra],
        ),
    }


class FakeEth:
    """Stands in for AsyncWeb3(...).eth."""

    def __init__(self, receipts: dict, block_timestamp: int = BLOCK_TS):
        self.receipts = receipts
        self.block_timestamp = block_timestamp
        self.receipt_calls: list[str] = []

    async def get_transaction_receipt(self, transaction_hash):
        self.receipt_calls.append(transaction_hash)
        if transaction_hash not in self.receipts:
            raise TransactionNotFound(f"Transaction {transaction_hash} not found")
        return self.receipts[transaction_hash]

    async def get_block(self, block_identifier):
        return {"number": block_identifier, "timestamp": self.block_timestamp}


def make_receipt(*logs) -> dict:
    return {"blockNumber": 123, "logs": list(logs)}


# ── decode_cogni_log ──────────────────────────────────────────────────────────

class TestDecodeCogniLog:
    def test_topic0_is_event_signature_hash(self):
        expected = "0x" + keccak(
            text="CogniAction(address,uint256,string,string,string,string,bytes,address)"
        ).hex()
        assert COGNI_TOPIC0 == expected

    def test_decodes_all_fields(self):
        signal = decode_cogni_log(make_log(), block_timestamp=BLOCK_TS)
        assert signal is not None
        assert signal.dao.lower() == DAO
        assert signal.executor.lower() == EXECUTOR
        assert signal.chain_id == 11155111
        assert signal.vcs is Vcs.GITHUB
        assert signal.action is Action.MERGE
        assert signal.target is Target.CHANGE
        assert signal.resource == "5"
        assert signal.nonce == 3
        assert signal.deadline == 1_900_000_000
        assert signal.params_json == '{"merge_method": "squash"}'
        assert signal.extra_decoded is True

    def test_hex_string_topics_and_data(self):
        log = make_log()
        log["topics"] = ["0x" + t.hex() for t in log["topics"]]
        log["data"] = "0x" + log["data"].hex()
        signal = decode_cogni_log(log, block_timestamp=BLOCK_TS)
        assert signal is not None
        assert signal.resource == "5"

    def test_uint256_chain_id(self):
        signal = decode_cogni_log(make_log(chain_id=2**256 - 1), block_timestamp=BLOCK_TS)
        assert signal.chain_id == 2**256 - 1

    def test_empty_extra_falls_back(self):
        signal = decode_cogni_log(make_log(extra=b""), block_timestamp=BLOCK_TS)
        assert signal.nonce == 0
        assert signal.params_json == ""
        assert signal.deadline == BLOCK_TS + EXTRA_FALLBACK_TTL_SECONDS
        assert signal.extra_decoded is False

    def test_garbage_extra_falls_back(self):
        signal = decode_cogni_log(make_log(extra=b"\x01\x02\x03"), block_timestamp=BLOCK_TS)
        assert signal is not None
        assert signal.extra_decoded is False
        assert signal.deadline == BLOCK_TS + EXTRA_FALLBACK_TTL_SECONDS

    def test_decode_is_deterministic(self):
        log = make_log(extra=b"")
        first = decode_cogni_log(log, block_timestamp=BLOCK_TS)
        second = decode_cogni_log(log, block_timestamp=BLOCK_TS)
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_other_event_ignored(self):
        other = "0x" + keccak(text="Transfer(address,address,uint256)").hex()
        assert decode_cogni_log(make_log(topic0=other), block_timestamp=BLOCK_TS) is None

    def test_invalid_action_returns_none(self):
        assert decode_cogni_log(make_log(action="delete"), block_timestamp=BLOCK_TS) is None

    def test_invalid_target_returns_none(self):
        assert decode_cogni_log(make_log(target="branch"), block_timestamp=BLOCK_TS) is None

    def test_wrong_topic_count_returns_none(self):
        log = make_log()
        log["topics"] = log["topics"][:3]
        assert decode_cogni_log(log, block_timestamp=BLOCK_TS) is None

    def test_truncated_data_returns_none(self):
        log = make_log()
        log["data"] = log["data"][:40]
        assert decode_cogni_log(log, block_timestamp=BLOCK_TS) is None

    def test_is_cogni_log(self):
        assert is_cogni_log(make_log())
        assert not is_cogni_log({"topics": []})


class TestDecodeExtra:
    def test_round_trip_fields(self):
        fields = decode_extra(make_extra(nonce=9, deadline=42, params_json=""))
        assert (fields.nonce, fields.deadline, fields.params_json) == (9, 42, "")

    def test_all_zero_is_missing(self):
        assert decode_extra(b"\x00" * 96) is None


class TestInferVcs:
    @pytest.mark.parametrize("url, expected", [
        ("https://github.com/o/r", Vcs.GITHUB),
        ("https://gitlab.com/g/s/p", Vcs.GITLAB),
        ("rad:z3gqcJUoA1n9HaHKufZs5FCSGazv5", Vcs.RADICLE),
        ("https://git.example.com/o/r", Vcs.GITHUB),
    ])
    def test_host_mapping(self, url, expected):
        assert infer_vcs(url) is expected


# ── ReceiptSignalFetcher ──────────────────────────────────────────────────────

class TestReceiptSignalFetcher:
    async def test_decodes_matching_log(self):
        fetcher = ReceiptSignalFetcher(FakeEth({TX: make_receipt(make_log())}))
        signal = await fetcher.fetch_and_decode(TX, CONTRACT)
        assert signal is not None
        assert signal.resource == "5"

    async def test_contract_address_is_case_insensitive(self):
        fetcher = ReceiptSignalFetcher(FakeEth({TX: make_receipt(make_log())}))
        assert await fetcher.fetch_and_decode(TX, CONTRACT.upper().replace("0X", "0x")) is not None

    async def test_logs_from_other_contracts_ignored(self):
        fetcher = ReceiptSignalFetcher(FakeEth({TX: make_receipt(make_log(address=OTHER_CONTRACT))}))
        assert await fetcher.fetch_and_decode(TX, CONTRACT) is None

    async def test_only_first_matching_log_is_used(self):
        receipt = make_receipt(
            make_log(address=OTHER_CONTRACT, resource="1"),
            make_log(resource="2"),
            make_log(resource="3"),
        )
        signal = await ReceiptSignalFetcher(FakeEth({TX: receipt})).fetch_and_decode(TX, CONTRACT)
        assert signal.resource == "2"

    async def test_undecodable_log_is_skipped(self):
        receipt = make_receipt(make_log(action="delete"), make_log(resource="7"))
        signal = await ReceiptSignalFetcher(FakeEth({TX: receipt})).fetch_and_decode(TX, CONTRACT)
        assert signal.resource == "7"

    async def test_unknown_transaction_returns_none(self):
        assert await ReceiptSignalFetcher(FakeEth({})).fetch_and_decode(TX, CONTRACT) is None

    async def test_fallback_deadline_uses_block_timestamp(self):
        eth = FakeEth({TX: make_receipt(make_log(extra=b""))}, block_timestamp=1_000)
        signal = await ReceiptSignalFetcher(eth).fetch_and_decode(TX, CONTRACT)
        assert signal.deadline == 1_000 + EXTRA_FALLBACK_TTL_SECONDS

    async def test_same_receipt_twice_gives_identical_signals(self):
        fetcher = ReceiptSignalFetcher(FakeEth({TX: make_receipt(make_log(extra=b""))}))
        first = await fetcher.fetch_and_decode(TX, CONTRACT)
        second = await fetcher.fetch_and_decode(TX, CONTRACT)
        assert first.model_dump_json() == second.model_dump_json()
