# app/cli.py
"""
Payment links CLI

Command-line front end for a running payment links server:
1. Creating, listing, showing and deactivating payment links
2. Paying a payment link
3. Downloading x402 protected files, paying the challenge when asked

Payments use the key in PAYER_PRIVATE_KEY; --gasless selects the
(simulated) paymaster broadcaster.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

import requests
from rich.console import Console
from rich.table import Table

from app.client.broadcaster import DirectWalletBroadcaster, PaymasterBroadcaster, PaymentBroadcaster
from app.client.orchestrator import PaymentResult, X402Client
from app.client.wallet import Web3WalletConnection
from app.core.config import settings

console = Console()


def build_broadcaster(gasless: bool) -> Optional[PaymentBroadcaster]:
    """Wallet-backed broadcaster from PAYER_PRIVATE_KEY, None when unset."""
    private_key = settings.PAYER_PRIVATE_KEY
    if private_key is None or not private_key.get_secret_value():
        return None
    wallet = Web3WalletConnection(private_key.get_secret_value(), rpc_url=settings.RPC_URL)
    if gasless:
        return PaymasterBroadcaster(wallet)
    return DirectWalletBroadcaster(wallet)


def print_status(result: PaymentResult) -> None:
    if result.success:
        console.print(f"[green]{result.status_message}[/green]")
    else:
        console.print(f"[red]{result.status_message}[/red]")


def print_error(response) -> None:
    try:
        message = response.json().get("error")
    except ValueError:
        message = None
    console.print(f"[red]Error: {message or f'HTTP {response.status_code}'}[/red]")


def display_links(links: List[dict]) -> None:
    if not links:
        console.print("[yellow]No payment links[/yellow]")
        return

    table = Table(title="Payment Links", show_header=True, header_style="bold magenta")
    table.add_column("Slug", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Amount (USDC)", justify="right", style="yellow")
    table.add_column("Payments", justify="right", style="blue")
    table.add_column("Active", style="green")

    for link in links:
        table.add_row(
            link["slug"],
            link["title"],
            link["amount"],
            str(len(link.get("payments", []))),
            "yes" if link.get("isActive") else "no",
        )

    console.print(table)


def cmd_list(client: X402Client, args) -> int:
    response = client.session.get(client.url(f"{client.api_prefix}/payment-links"))
    if not response.ok:
        print_error(response)
        return 1
    display_links(response.json()["paymentLinks"])
    return 0


def cmd_create(client: X402Client, args) -> int:
    payload = {
        "title": args.title,
        "amount": args.amount,
        "recipientAddress": args.recipient,
        "description": args.description,
        "createdBy": args.created_by,
    }
    response = client.session.post(client.url(f"{client.api_prefix}/payment-links"), json=payload)
    if not response.ok:
        print_error(response)
        return 1

    data = response.json()
    console.print(f"[green]Payment link created:[/green] {data['paymentLink']['slug']}")
    console.print(f"Share: [cyan]{data['url']}[/cyan]")
    return 0


def cmd_show(client: X402Client, args) -> int:
    response = client.session.get(client.url(f"{client.api_prefix}/payment-links/{args.slug}"))
    if not response.ok:
        print_error(response)
        return 1

    data = response.json()
    link, stats = data["paymentLink"], data["stats"]
    console.print(f"[bold]{link['title']}[/bold]")
    if link.get("description"):
        console.print(link["description"])
    console.print(f"Amount: [yellow]{link['amount']} USDC[/yellow] to {link['recipientAddress']}")
    if stats["count"] > 0:
        plural = "s" if stats["count"] != 1 else ""
        console.print(f"{stats['count']} payment{plural} received, {stats['total']} USDC total")
    return 0


def cmd_deactivate(client: X402Client, args) -> int:
    response = client.session.delete(client.url(f"{client.api_prefix}/payment-links/{args.slug}"))
    if not response.ok:
        print_error(response)
        return 1
    console.print(f"[green]Deactivated {args.slug}[/green]")
    return 0


def cmd_pay(client: X402Client, args) -> int:
    result = client.pay_link(args.slug)
    print_status(result)
    return 0 if result.success else 1


def cmd_download(client: X402Client, args) -> int:
    result = client.download(args.file_id)
    if result.challenge:
        challenge = result.challenge
        console.print(
            f"[blue]Payment required:[/blue] {challenge.amount} {challenge.currency} "
            f"to {challenge.address} ({challenge.description})"
        )
    print_status(result)
    if not result.success or not result.download_url:
        return 0 if result.success else 1

    try:
        content = client.fetch_content(result.download_url)
    except requests.RequestException as e:
        console.print(f"[red]Download failed: {e}[/red]")
        return 1

    output = Path(args.output or args.file_id)
    output.write_bytes(content)
    console.print(f"[green]Saved {len(content)} bytes to {output}[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="paylinks", description="x402 payment links client")
    parser.add_argument("--server", default=settings.PAYLINKS_SERVER_URL)
    parser.add_argument("--gasless", action="store_true", help="Pay through the paymaster (simulated)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List payment links").set_defaults(handler=cmd_list)

    create = subparsers.add_parser("create", help="Create a payment link")
    create.add_argument("title")
    create.add_argument("amount")
    create.add_argument("recipient")
    create.add_argument("--description")
    create.add_argument("--created-by")
    create.set_defaults(handler=cmd_create)

    show = subparsers.add_parser("show", help="Show a payment link and its totals")
    show.add_argument("slug")
    show.set_defaults(handler=cmd_show)

    deactivate = subparsers.add_parser("deactivate", help="Deactivate a payment link")
    deactivate.add_argument("slug")
    deactivate.set_defaults(handler=cmd_deactivate)

    pay = subparsers.add_parser("pay", help="Pay a payment link")
    pay.add_argument("slug")
    pay.set_defaults(handler=cmd_pay)

    download = subparsers.add_parser("download", help="Download a file, paying if required")
    download.add_argument("file_id")
    download.add_argument("-o", "--output")
    download.set_defaults(handler=cmd_download)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    client = X402Client(base_url=args.server, broadcaster=build_broadcaster(args.gasless))
    try:
        return args.handler(client, args)
    except requests.RequestException as e:
        console.print(f"[red]Cannot reach {args.server}: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
