import pytest

from cli import build_parser, parse_balance_specs, parse_entry_specs, parse_wallet_specs
from xpayr.core.recovery import ValidationError

RECIPIENT = "0x" + "22" * 20


def test_parse_balance_specs_in_usdc():
    chains, balances, thresholds = parse_balance_specs(["base:500:1000", "polygon:2000.5:1000"])

    assert chains == ["base", "polygon"]
    assert balances == [500_000_000, 2_000_500_000]
    assert thresholds == [1_000_000_000, 1_000_000_000]


def test_parse_wallet_specs():
    wallets = parse_wallet_specs([f"arbitrum:{RECIPIENT}:250"])

    assert wallets[0].chain == "arbitrum"
    assert wallets[0].address == RECIPIENT
    assert wallets[0].min_threshold == 250_000_000


def test_parse_entry_specs_builds_plan():
    plan, recipients = parse_entry_specs([f"base:1.5:{RECIPIENT}", f"polygon:0:{RECIPIENT}"])

    assert plan.amounts == [1_500_000, 0]
    assert plan.total_amount == 1_500_000
    assert recipients == [RECIPIENT, RECIPIENT]


def test_malformed_spec_rejected():
    with pytest.raises(ValidationError):
        parse_balance_specs(["base:500"])


def test_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["simulate", "ethereum", f"base:10:{RECIPIENT}"])
    assert args.command == "simulate"
    assert args.source == "ethereum"

    args = parser.parse_args(["monitor", "0xabc", "0xdef"])
    assert args.message_ids == ["0xabc", "0xdef"]
