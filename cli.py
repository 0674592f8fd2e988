#!/usr/bin/env python3
"""Simple CLI for planning and previewing USDC dispatches locally"""

import argparse
import asyncio
from typing import List, Tuple

from xpayr.config import settings
from xpayr.core.dispatch.models import DispatchPlan, DispatchResult
from xpayr.core.dispatch.sampling import MerchantWallet
from xpayr.core.dispatch.service import DispatchService
from xpayr.core.dispatch.units import format_usdc_amount, parse_usdc_amount
from xpayr.core.recovery import ValidationError
from xpayr.logging_config import setup_logging


def _split(spec: str, parts: int, label: str) -> List[str]:
    values = spec.split(":")
    if len(values) != parts:
        raise ValidationError(f"Expected {label}, got {spec!r}")
    return values


def parse_balance_specs(specs: List[str]) -> Tuple[List[str], List[int], List[int]]:
    """``base:500:1000`` -> chain, balance, threshold (USDC)."""
    chains, balances, thresholds = [], [], []
    for spec in specs:
        chain, balance, threshold = _split(spec, 3, "CHAIN:BALANCE:THRESHOLD")
        chains.append(chain)
        balances.append(parse_usdc_amount(balance))
        thresholds.append(parse_usdc_amount(threshold))
    return chains, balances, thresholds


def parse_wallet_specs(specs: List[str]) -> List[MerchantWallet]:
    """``base:0xabc...:1000`` -> MerchantWallet."""
    wallets = []
    for spec in specs:
        chain, address, threshold = _split(spec, 3, "CHAIN:ADDRESS:THRESHOLD")
        wallets.append(MerchantWallet(chain=chain, address=address, min_threshold=parse_usdc_amount(threshold)))
    return wallets


def parse_entry_specs(specs: List[str]) -> Tuple[DispatchPlan, List[str]]:
    """``base:250:0xabc...`` -> plan entry plus recipient."""
    chains, amounts, recipients = [], [], []
    for spec in specs:
        chain, amount, recipient = _split(spec, 3, "CHAIN:AMOUNT:RECIPIENT")
        chains.append(chain)
        amounts.append(parse_usdc_amount(amount))
        recipients.append(recipient)
    return DispatchPlan.from_amounts(chains, amounts), recipients


def print_plan(plan: DispatchPlan) -> None:
    print("\n📋 Dispatch Plan")
    print("=" * 50)
    for entry in plan.entries:
        print(f"{entry.chain:<12} {format_usdc_amount(entry.amount):>16} USDC")
    print("-" * 50)
    print(f"{'total':<12} {format_usdc_amount(plan.total_amount):>16} USDC")


def print_result(result: DispatchResult) -> None:
    status = "✅" if result.overall_success else "❌"
    mode = "Simulation" if result.dry_run else "Dispatch"
    print(f"\n{status} {mode} {result.dispatch_id} from {result.source_chain}")
    print("=" * 50)
    for entry in result.entries:
        line = f"{entry.chain:<12} {format_usdc_amount(entry.amount):>16} USDC  {entry.status.value}"
        if entry.estimated_time_seconds:
            line += f"  ~{entry.estimated_time_seconds}s"
        print(line)
        if entry.error:
            print(f"    {entry.error.get('kind')}: {entry.error.get('message')}")
    print("-" * 50)
    print(f"Total fees: {result.total_fees_wei} wei")
    if result.dry_run:
        print(f"Feasible: {'yes' if result.feasible else 'no'}")
    if result.warnings:
        print(f"\n⚠️  Warnings: {'; '.join(result.warnings)}")


async def cli_plan(service: DispatchService, specs: List[str], total: str) -> None:
    chains, balances, thresholds = parse_balance_specs(specs)
    plan = service.plan_dispatch(balances, thresholds, parse_usdc_amount(total), chains)
    print_plan(plan)


async def cli_plan_live(service: DispatchService, specs: List[str], total: str) -> None:
    wallets = parse_wallet_specs(specs)
    print(f"🔍 Reading balances for {len(wallets)} wallets...")
    plan = await service.plan_from_wallets(wallets, parse_usdc_amount(total))
    print_plan(plan)


async def cli_quote(service: DispatchService, source: str, specs: List[str]) -> None:
    plan, recipients = parse_entry_specs(specs)
    quotes = await service.quote_dispatch(plan, source, recipients)
    print(f"\n💱 Quotes from {source}")
    print("=" * 50)
    for quote in quotes:
        print(
            f"{quote.target_chain:<12} {format_usdc_amount(quote.amount):>12} USDC  "
            f"fee {quote.total_fee_wei} wei ({quote.fee_source})  ~{quote.estimated_time_seconds}s"
        )
        for warning in quote.warnings:
            print(f"    ⚠️  {warning}")


async def cli_simulate(service: DispatchService, source: str, specs: List[str]) -> None:
    plan, recipients = parse_entry_specs(specs)
    result = await service.execute_dispatch(plan, source, recipients, dry_run=True)
    print_result(result)


async def cli_monitor(service: DispatchService, message_ids: List[str]) -> None:
    summary = await service.monitor_dispatch(message_ids)
    print("\n📡 Transfer Status")
    print("=" * 50)
    for report in summary.messages:
        print(f"{report.message_id[:18]:<20} {report.status.value:<14} {report.progress:>3}%")
    print("-" * 50)
    print(f"completed={summary.completed} pending={summary.pending} failed={summary.failed} unknown={summary.unknown}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="xpayr dispatch CLI (amounts in USDC)")
    subparsers = parser.add_subparsers(dest="command")

    plan_parser = subparsers.add_parser("plan", help="Compute a dispatch plan from known balances")
    plan_parser.add_argument("total", help="USDC to distribute")
    plan_parser.add_argument("balances", nargs="+", metavar="CHAIN:BALANCE:THRESHOLD")

    live_parser = subparsers.add_parser("plan-live", help="Compute a dispatch plan from on-chain balances")
    live_parser.add_argument("total", help="USDC to distribute")
    live_parser.add_argument("wallets", nargs="+", metavar="CHAIN:ADDRESS:THRESHOLD")

    for name, help_text in (("quote", "Quote fees and time per transfer"), ("simulate", "Dry-run a dispatch")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("source", help="Source chain the USDC is burned on")
        sub.add_argument("entries", nargs="+", metavar="CHAIN:AMOUNT:RECIPIENT")

    monitor_parser = subparsers.add_parser("monitor", help="Check transfer status by burn message hash")
    monitor_parser.add_argument("message_ids", nargs="+")

    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level or "WARNING")
    service = DispatchService.from_settings(settings)
    command = args.command.lower()

    try:
        if command == "plan":
            await cli_plan(service, args.balances, args.total)
        elif command == "plan-live":
            await cli_plan_live(service, args.wallets, args.total)
        elif command == "quote":
            await cli_quote(service, args.source, args.entries)
        elif command == "simulate":
            await cli_simulate(service, args.source, args.entries)
        elif command == "monitor":
            await cli_monitor(service, args.message_ids)
        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()
    except ValidationError as e:
        print(f"❌ Error: {e}")
    finally:
        await service.close()


if __name__ == "__main__":
    asyncio.run(main())
