import argparse
import logging
import os
import sys
import traceback
from typing import Any, Optional

from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from src.exceptions import SalaryPipelineError
from src.services.pipeline_service import SalaryPipeline
from src.utils.config_loader import load_config
from src.utils.csv_validator import validate_csv
from src.utils.env_loader import get_log_level_name
from src.utils.logger import setup_logging
from src.utils.performance import format_timings


def train_workflow(
    csv_path: str,
    config_path: Optional[str],
    console: Any,
    force: bool = False,
    clear_cache: bool = False,
    export_dir: Optional[str] = None,
) -> None:
    """Execute the model training workflow. Args: csv_path (str): Training data CSV path. config_path (Optional[str]): Config file path. console (Any): Rich console. force (bool): Retrain even if a compatible model is cached. clear_cache (bool): Clear the cache before anything else. export_dir (Optional[str]): Write a bundled model here. Returns: None."""
    if not os.path.exists(csv_path):
        console.print(f"[bold red]Error: {csv_path} not found.[/bold red]")
        return

    with open(csv_path, "rb") as f:
        is_valid, error, _ = validate_csv(f)
    if not is_valid:
        console.print(f"[bold red]Error: {csv_path}: {error}[/bold red]")
        return

    if config_path and os.path.exists(config_path):
        load_config(config_path)

    pipeline = SalaryPipeline()
    if clear_cache:
        pipeline.clear_cache()
        console.print("[dim]Cleared cached model.[/dim]")

    status_text = Text("Status: Preparing...", style="bold blue")

    results_table = Table(box=box.SIMPLE, show_header=True, header_style="bold magenta")
    results_table.add_column("Epoch", style="cyan", justify="right")
    results_table.add_column("Loss", justify="right")
    results_table.add_column("Val Loss", justify="right")

    output_group = Group(status_text, Text(""), results_table)

    with Live(output_group, console=console, refresh_per_second=4, transient=False):
        status_text.plain = f"Status: Loading data from {csv_path}..."
        data = pipeline.load_and_process_data(csv_path)

        status_text.plain = f"Status: Loaded {data.size} valid records. Resolving model..."

        def console_callback(msg: str, data: Optional[dict] = None) -> None:
            if data and data.get("stage") == "train_start":
                status_text.plain = f"Status: {msg}"
            elif data and data.get("stage") == "epoch_end":
                epoch = data["epoch"]
                status_text.plain = f"Status: Training epoch {epoch}/{data['epochs']}..."
                # keep the table short: first epoch, every tenth, and the last
                if epoch == 1 or epoch % 10 == 0 or epoch == data["epochs"]:
                    val_loss = data.get("val_loss")
                    results_table.add_row(
                        str(epoch),
                        f"{data['loss']:.4f}",
                        f"{val_loss:.4f}" if val_loss is not None else "-",
                    )

        if force:
            predictor = pipeline.retrain(data, callback=console_callback)
        else:
            predictor = pipeline.get_or_train_model(data, callback=console_callback)

        status_text.plain = "Status: Completed"

    metadata = predictor.metadata
    console.print(
        f"[dim]Model version {metadata.version}, trained at {metadata.trained_at or 'unknown'} "
        f"on {metadata.data_size} records[/dim]"
    )
    timings = format_timings()
    if timings:
        console.print(f"[dim]Timings: {timings}[/dim]")

    if export_dir:
        paths = pipeline.export_bundle(predictor, export_dir)
        console.print(f"[dim]Exported bundled model: {paths['weights']}, {paths['scaler']}[/dim]")


def main():
    setup_logging(level=getattr(logging, get_log_level_name("WARNING"), logging.WARNING))
    console = Console()
    console.print("[bold green]Salary Prediction Training CLI[/bold green]")

    parser = argparse.ArgumentParser(description="Train the salary prediction model")
    parser.add_argument("--csv", default="data/salaries.csv", help="Path to training CSV")
    parser.add_argument("--config", default="config.json", help="Path to config JSON")
    parser.add_argument("--force", action="store_true", help="Retrain even if a cached model exists")
    parser.add_argument("--clear-cache", action="store_true", help="Clear the cached model first")
    parser.add_argument("--export-bundle", default=None, help="Directory to write a bundled model to")

    args = parser.parse_args()

    try:
        train_workflow(
            args.csv,
            args.config,
            console,
            force=args.force,
            clear_cache=args.clear_cache,
            export_dir=args.export_bundle,
        )
        console.print("\n[bold green]Training workflow completed![/bold green]")
    except SalaryPipelineError as e:
        console.print(f"[bold red]Training failed: {e.message}[/bold red]")
        console.print("Retry, or run again with --clear-cache.")
        sys.exit(1)
    except Exception as e:
        console.print(f"[bold red]Training failed: {e}[/bold red]")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
