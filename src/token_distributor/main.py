"""
Main CLI application for the Autonomys token distributor.
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich.console import Console

from .api_clients import SubstrateChainClient
from .config import Config
from .csv_logger import CSVTransactionLogger
from .distributor import TokenDistributor
from .exceptions import ConfigError, PersistenceError, ValidationError
from .logging_setup import setup_logging
from .models import DistributionRecord, DistributionSummary
from .prompts import InteractivePrompts
from .resume import ResumeManager
from .utils import format_token_amount, to_decimal_string
from .validation import CSVValidator

logger = logging.getLogger(__name__)


app = typer.Typer(
    name="token-distributor",
    help="Distribute tokens to a list of addresses with resumable, checkpointed runs."
)

console = Console()


def load_config() -> Config:
    """Load and validate application configuration."""
    try:
        config = Config.from_env()
        config.validate()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print(
            "\n[yellow]Please check your .env file and ensure all required values are set.[/yellow]")
        console.print("Run `token-distributor setup` to create a template.")
        raise typer.Exit(1)

    setup_logging(config, console)
    logger.info(
        f"Configuration loaded: network={config.network} batch_size={config.batch_size} "
        f"confirmation_blocks={config.confirmation_blocks}")
    return config


def run_dry_run(records: List[DistributionRecord], sample_size: int = 5, delay: float = 1.0,
                sleep: Callable[[float], None] = time.sleep) -> int:
    """Preview the first sample_size records without sending anything.

    Returns the number of records previewed.
    """
    sample = records[:max(sample_size, 0)]
    console.print("\n[blue]🧪 Executing Dry Run...[/blue]")
    console.print("[dim](No actual transactions will be sent)[/dim]\n")

    for index, record in enumerate(sample):
        console.print(
            f"[{index + 1}/{len(sample)}] {record.address} ← "
            f"{format_token_amount(record.amount, 18)} tokens")
        sleep(delay)
        logger.info(
            f"Dry run transaction {index}: {record.address} amount={record.amount}")

    console.print("\n[green]✅ Dry run completed successfully![/green]")
    if len(records) > len(sample):
        console.print(
            f"[dim]Note: only the first {len(sample)} records were previewed. "
            f"Total: {len(records)}[/dim]")
    return len(sample)


def build_distributor(config: Config, prompts: InteractivePrompts,
                      source_filename: Optional[str] = None) -> TokenDistributor:
    transaction_logger = None
    if source_filename:
        transaction_logger = CSVTransactionLogger(source_filename, config.network, config.log_dir)

    return TokenDistributor(
        config,
        SubstrateChainClient(),
        failure_handler=prompts,
        resume_manager=ResumeManager(config.resume_dir),
        transaction_logger=transaction_logger,
    )


def execute_distribution(distributor: TokenDistributor, records: List[DistributionRecord],
                         resume_from_index: int = 0,
                         source_filename: Optional[str] = None) -> DistributionSummary:
    console.print("\n[blue]🚀 Starting token distribution...[/blue]")
    return distributor.distribute(records, resume_from_index, source_filename)


def _handle_unexpected_error(e: Exception) -> None:
    logger.exception("Unexpected error, stopping")
    console.print(f"[red]Distribution failed: {e}[/red]")
    console.print(
        "[blue]Any saved resume data can be continued with `token-distributor resume`.[/blue]")
    raise typer.Exit(1)


def _handle_interrupt() -> None:
    console.print("\n\n[yellow]⏸️  Distribution interrupted by user.[/yellow]")
    console.print(
        "[blue]Resume data has been saved. You can resume later with `token-distributor resume`.[/blue]")
    raise typer.Exit(0)


@app.command()
def distribute(
    csv_path: Path = typer.Argument(..., help="CSV file with address,amount rows"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Preview the first records without sending transactions"),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the final confirmation prompt"),
):
    """Validate a CSV file and distribute tokens to every valid row."""
    config = load_config()
    prompts = InteractivePrompts(console)
    validator = CSVValidator()

    console.print("\n[blue]📋 Validating CSV file...[/blue]")
    try:
        validation = validator.validate_csv(csv_path)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    prompts.show_validation_result(validation)
    if not validation.is_valid:
        console.print("[yellow]Fix the CSV file and try again. Distribution aborted.[/yellow]")
        raise typer.Exit(1)

    records = validator.parse_validated_csv(csv_path)

    console.print(f"\n[blue]🔗 Connecting to {config.network_config.name}...[/blue]")
    try:
        with build_distributor(config, prompts, str(csv_path)) as distributor:
            balance = distributor.validate_sufficient_balance(validation.total_amount)
            if not balance.sufficient:
                prompts.show_balance_shortfall(
                    balance, validation.total_amount, config.gas_buffer_minor_units)
                if not prompts.confirm("Continue anyway (transactions may fail)?", default=False):
                    console.print(
                        "[yellow]Distribution aborted due to insufficient balance.[/yellow]")
                    raise typer.Exit(1)

            # --yes never turns a dry run into a live one
            if dry_run:
                run_dry_run(records, config.dry_run_sample_size, config.dry_run_delay)
                if not prompts.confirm(
                        "Dry run complete. Proceed with the actual distribution?",
                        default=False):
                    console.print("[yellow]Dry run only, no transactions were sent.[/yellow]")
                    return

            if not yes and not prompts.confirm_distribution(
                    validation, distributor.distributor_address, distributor.network_name,
                    balance):
                console.print("[yellow]Distribution cancelled by user.[/yellow]")
                return

            summary = execute_distribution(distributor, records, source_filename=str(csv_path))
    except KeyboardInterrupt:
        _handle_interrupt()
    except typer.Exit:
        raise
    except Exception as e:
        _handle_unexpected_error(e)

    prompts.show_distribution_complete(summary)
    if summary.aborted_by_user:
        raise typer.Exit(1)


@app.command()
def resume(
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="Snapshot file name (defaults to the latest)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Resume without asking"),
):
    """Resume a paused or interrupted distribution."""
    config = load_config()
    prompts = InteractivePrompts(console)
    resume_manager = ResumeManager(config.resume_dir)

    snapshot = (resume_manager.load_specific_state(file) if file
                else resume_manager.load_latest_state())
    if snapshot is None:
        console.print("[yellow]No resume data found.[/yellow]")
        raise typer.Exit(1)

    analysis = resume_manager.analyze_progress(snapshot)
    if not yes and not prompts.ask_to_resume(snapshot, analysis):
        console.print("[yellow]Resume cancelled.[/yellow]")
        return

    logger.info(f"Resuming distribution from index {snapshot.last_processed_index}")
    console.print(f"\n[blue]🔗 Connecting to {config.network_config.name}...[/blue]")
    try:
        with build_distributor(config, prompts, snapshot.source_filename) as distributor:
            summary = execute_distribution(
                distributor, snapshot.records, snapshot.last_processed_index,
                snapshot.source_filename)
    except KeyboardInterrupt:
        _handle_interrupt()
    except typer.Exit:
        raise
    except Exception as e:
        _handle_unexpected_error(e)

    prompts.show_distribution_complete(summary)
    if summary.aborted_by_user:
        raise typer.Exit(1)


@app.command()
def validate(
    csv_path: Path = typer.Argument(..., help="CSV file with address,amount rows"),
):
    """Validate a CSV file without connecting to the network."""
    try:
        result = CSVValidator().validate_csv(csv_path)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    InteractivePrompts(console).show_validation_result(result)
    if not result.is_valid:
        raise typer.Exit(1)

    console.print(
        f"\n[green]✓ {result.record_count} records, "
        f"{to_decimal_string(result.total_amount)} tokens in total[/green]")


@app.command()
def status(
    resume_dir: Path = typer.Option(
        Path(".resume"), "--resume-dir", envvar="RESUME_DIR",
        help="Directory holding resume snapshots"),
):
    """Show saved resume snapshots."""
    resume_manager = ResumeManager(resume_dir)
    stats = resume_manager.get_resume_stats()
    if not stats.has_resume_data:
        console.print("[green]No resume data found.[/green]")
        return

    console.print(f"Snapshots: [cyan]{stats.resume_file_count}[/cyan]")
    console.print(f"Total size: [cyan]{stats.total_size:,}[/cyan] bytes")
    if stats.latest_timestamp:
        console.print(f"Latest: [cyan]{stats.latest_timestamp:%Y-%m-%d %H:%M:%S %Z}[/cyan]")
    for name in resume_manager.list_resume_files():
        console.print(f"  • {name}")


@app.command("export-resume")
def export_resume(
    output: Path = typer.Argument(..., help="Where to write the JSON export"),
    resume_dir: Path = typer.Option(
        Path(".resume"), "--resume-dir", envvar="RESUME_DIR",
        help="Directory holding resume snapshots"),
):
    """Export the latest resume snapshot with a progress analysis."""
    try:
        path = ResumeManager(resume_dir).export_resume_data(output)
    except PersistenceError as e:
        console.print(f"[red]Export failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Resume data exported to {path}[/green]")


@app.command("prune-resume")
def prune_resume(
    keep: int = typer.Option(5, "--keep", "-k", help="Number of newest snapshots to keep"),
    resume_dir: Path = typer.Option(
        Path(".resume"), "--resume-dir", envvar="RESUME_DIR",
        help="Directory holding resume snapshots"),
):
    """Delete old resume snapshots."""
    deleted = ResumeManager(resume_dir).clear_old_states(keep)
    console.print(f"[green]Deleted {deleted} old snapshot(s), kept up to {keep}.[/green]")


@app.command()
def setup():
    """Setup the application by creating a .env file template."""
    env_content = """# Token Distributor Configuration

# Network: mainnet or chronos
NETWORK=chronos

# Required: distributor account seed (64 hex characters, optional 0x prefix)
DISTRIBUTOR_PRIVATE_KEY=your_private_key_here

# Optional: custom RPC endpoint
# RPC_ENDPOINT=wss://rpc.chronos.autonomys.xyz/ws

# Distribution Settings
CONFIRMATION_BLOCKS=2
CONFIRMATION_TIMEOUT=300
BATCH_SIZE=10
GAS_BUFFER=1
TRANSFER_DELAY=1

# Logging
LOG_LEVEL=info
LOG_TO_FILE=true
"""

    env_path = Path(".env")
    if env_path.exists():
        console.print("[yellow].env file already exists![/yellow]")
        if not typer.confirm("Overwrite existing .env file?"):
            return

    with open(env_path, 'w') as f:
        f.write(env_content)

    console.print(f"[green]Created .env file at {env_path.absolute()}[/green]")
    console.print(
        "\n[yellow]Please edit the .env file and add your distributor key:[/yellow]")
    console.print("1. Replace 'your_private_key_here' with the distributor seed")
    console.print("2. Choose the network (mainnet or chronos)")
    console.print("3. Run: token-distributor validate <csv_file>")
    console.print("4. Run: token-distributor distribute <csv_file>")


if __name__ == "__main__":
    app()
