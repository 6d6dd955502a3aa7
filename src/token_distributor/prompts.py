"""
Interactive operator prompts built on rich.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .models import (
    BalanceCheck,
    DistributionRecord,
    DistributionSummary,
    FailureAction,
    ProgressAnalysis,
    ResumeSnapshot,
    ValidationResult,
)
from .utils import format_token_amount
from .validation import MAX_REPORTED_ERRORS

# Retry is no longer offered once a record has failed this many times
MAX_INTERACTIVE_RETRIES = 3


class InteractivePrompts:
    """Asks the operator for decisions during a distribution."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def handle_failure(self, record: DistributionRecord, index: int, error: str,
                       attempts: int) -> FailureAction:
        self.console.print("\n[red]❌ Transaction Failed[/red]")
        self.console.print(f"Address: [cyan]{record.address}[/cyan]")
        self.console.print(f"Amount: [yellow]{format_token_amount(record.amount, 18)}[/yellow]")
        self.console.print(f"Record: [yellow]{index + 1}[/yellow]")
        self.console.print(f"Attempt: [yellow]{attempts}[/yellow]")
        self.console.print(f"[red]Error: {error}[/red]")

        choices = [action.value for action in FailureAction]
        if attempts >= MAX_INTERACTIVE_RETRIES:
            choices.remove(FailureAction.RETRY.value)

        answer = Prompt.ask(
            "What would you like to do?", choices=choices, default=choices[0],
            console=self.console)
        return FailureAction(answer)

    def confirm(self, message: str, default: bool = False) -> bool:
        return Confirm.ask(message, default=default, console=self.console)

    def show_validation_result(self, result: ValidationResult) -> None:
        status = "[green]valid[/green]" if result.is_valid else "[red]invalid[/red]"
        self.console.print(Panel(
            f"Status: {status}\n"
            f"Records: [green]{result.record_count:,}[/green]\n"
            f"Total amount: [yellow]{format_token_amount(result.total_amount, 18)}[/yellow] tokens\n"
            f"Autonomys addresses: {result.address_stats.primary_count:,}\n"
            f"Substrate addresses: {result.address_stats.legacy_count:,}",
            title="CSV Validation",
            expand=False,
        ))

        if result.errors:
            self.console.print(f"\n[red]Errors ({len(result.errors)}):[/red]")
            for error in result.errors[:MAX_REPORTED_ERRORS]:
                self.console.print(f"  • {error}")
            remaining = len(result.errors) - MAX_REPORTED_ERRORS
            if remaining > 0:
                self.console.print(f"  ... and {remaining} more errors")

        if result.warnings:
            self.console.print(f"\n[yellow]Warnings ({len(result.warnings)}):[/yellow]")
            for warning in result.warnings[:MAX_REPORTED_ERRORS]:
                self.console.print(f"  • {warning}")
            remaining = len(result.warnings) - MAX_REPORTED_ERRORS
            if remaining > 0:
                self.console.print(f"  ... and {remaining} more warnings")

        if result.duplicates:
            self.console.print(f"\n[yellow]Duplicate addresses ({len(result.duplicates)}):[/yellow]")
            for duplicate in result.duplicates[:MAX_REPORTED_ERRORS]:
                lines = ", ".join(str(line) for line in duplicate.indices)
                self.console.print(f"  • {duplicate.address} on lines {lines}")

    def show_balance_shortfall(self, check: BalanceCheck, distribution_amount: int,
                               gas_buffer: int) -> None:
        self.console.print("\n[red]💰 Insufficient Balance[/red]")
        self.console.print(f"Distribution Amount: [cyan]{format_token_amount(distribution_amount)}[/cyan] tokens")
        self.console.print(f"Gas Buffer: [cyan]{format_token_amount(gas_buffer)}[/cyan] tokens")
        self.console.print(f"Total Required: [yellow]{format_token_amount(check.required_amount)}[/yellow] tokens")
        self.console.print(f"Available: [yellow]{format_token_amount(check.current_balance)}[/yellow] tokens")
        self.console.print(f"[red]Shortfall: {format_token_amount(check.shortfall or 0)} tokens[/red]")

    def confirm_distribution(self, result: ValidationResult, distributor_address: str,
                             network_name: str, balance: Optional[BalanceCheck] = None) -> bool:
        table = Table(title="Distribution Summary", show_header=False)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")
        table.add_row("Network", network_name)
        table.add_row("Distributor", distributor_address)
        table.add_row("Recipients", f"{result.record_count:,}")
        table.add_row("Total Amount", f"{format_token_amount(result.total_amount, 18)} tokens")
        if balance is not None:
            table.add_row("Balance", f"{format_token_amount(balance.current_balance)} tokens")
        self.console.print(table)

        return self.confirm("Proceed with the distribution?", default=False)

    def ask_to_resume(self, snapshot: ResumeSnapshot, analysis: ProgressAnalysis) -> bool:
        self.console.print(Panel(
            f"Timestamp: [cyan]{snapshot.timestamp:%Y-%m-%d %H:%M:%S %Z}[/cyan]\n"
            f"Source: {snapshot.source_filename or 'unknown'}\n"
            f"Total Records: [yellow]{len(snapshot.records):,}[/yellow]\n"
            f"Completed: [green]{analysis.completed:,}[/green]\n"
            f"Failed: [red]{analysis.failed:,}[/red]\n"
            f"Pending: [yellow]{analysis.pending:,}[/yellow]\n"
            f"Progress: [cyan]{analysis.completion_percentage:.1f}%[/cyan]",
            title="🔄 Previous Distribution Found",
            expand=False,
        ))
        return self.confirm("Would you like to resume this distribution?", default=True)

    def show_distribution_complete(self, summary: DistributionSummary) -> None:
        if summary.aborted_by_user:
            title = "[red]Distribution Aborted[/red]"
        elif summary.is_paused:
            title = "[yellow]Distribution Paused[/yellow]"
        else:
            title = "[green]Distribution Complete[/green]"

        table = Table(title=title, show_header=False)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value", justify="right")
        table.add_row("Total Records", f"{summary.total_records:,}")
        table.add_row("Completed", f"[green]{summary.completed:,}[/green]")
        table.add_row("Failed", f"[red]{summary.failed:,}[/red]")
        table.add_row("Skipped", f"{summary.skipped:,}")
        table.add_row("Total Amount", format_token_amount(summary.total_amount, 18))
        table.add_row("Distributed", format_token_amount(summary.distributed_amount, 18))
        table.add_row("Failed Amount", format_token_amount(summary.failed_amount, 18))
        if summary.end_time is not None:
            duration = summary.end_time - summary.start_time
            table.add_row("Duration", str(duration).split(".")[0])
        self.console.print(table)

        if summary.is_paused:
            self.console.print(
                "[blue]Resume data has been saved. Run `token-distributor resume` to continue.[/blue]")
