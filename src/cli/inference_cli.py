import argparse
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

import plotext as plt
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from src.exceptions import PredictionFailure, SalaryPipelineError
from src.model.dataset import ProcessedData
from src.model.preprocessing import COMPANY_SIZES, EMPLOYMENT_TYPES, EXPERIENCE_LEVELS
from src.model.schemas import JobProfile, ModelMetadata
from src.services.inference_service import SalaryPredictor
from src.services.pipeline_service import SalaryPipeline
from src.utils.config_loader import load_config
from src.utils.data_utils import round_half_up
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

STAT_TABLE_TITLES = {
    "experience_stats": "Salary by Experience Level",
    "employment_stats": "Salary by Employment Type",
    "company_size_stats": "Salary by Company Size",
    "remote_stats": "Salary by Remote Ratio",
    "yearly_stats": "Salary by Year",
    "location_stats": "Top Locations",
    "job_title_stats": "Top Job Titles",
}


def get_input(prompt: str, type_func: Callable[[str], Any] = str, valid_options: Optional[List[Any]] = None) -> Any:
    """Prompts user for input with type validation and optional allowed values."""
    while True:
        try:
            user_input = input(prompt).strip()
            if not user_input:
                continue

            val = type_func(user_input)

            if valid_options and val not in valid_options:
                print(f"Invalid option. Please choose from: {', '.join(map(str, valid_options))}")
                continue

            return val
        except ValueError:
            print(f"Invalid input. Please enter a valid {type_func.__name__}.")


def format_currency(val: float) -> str:
    return f"${val:,.0f}"


def collect_profile(job_titles: List[str]) -> JobProfile:
    """Interactive prompt for a job profile."""
    print("\n--- Enter Job Details ---")
    hint = ", ".join(job_titles[:5])
    job_title = get_input(f"Job Title (e.g. {hint}): ", str)
    level = get_input("Experience Level (EN, MI, SE, EX): ", str.upper, list(EXPERIENCE_LEVELS))
    employment = get_input("Employment Type (FT, PT, CT, FL): ", str.upper, list(EMPLOYMENT_TYPES))
    size = get_input("Company Size (S, M, L): ", str.upper, list(COMPANY_SIZES))
    remote = get_input("Remote Ratio (0-100): ", int)
    year = get_input("Work Year (e.g. 2024): ", int)

    return JobProfile(
        job_title=job_title,
        experience_level=level,
        employment_type=employment,
        company_size=size,
        remote_ratio=remote,
        work_year=year,
    )


def render_statistics(console: Console, data: ProcessedData, limit: int = 10) -> None:
    """Print the statistics tables and a bar chart of salary by experience level."""
    for name, title in STAT_TABLE_TITLES.items():
        stats = data.statistics[name]
        key_name = stats.columns[0]

        table = Table(title=title)
        table.add_column(key_name.title(), style="cyan", no_wrap=True)
        table.add_column("Avg Salary", style="magenta", justify="right")
        table.add_column("Count", justify="right")
        for row in stats.head(limit).itertuples(index=False):
            table.add_row(str(row[0]), format_currency(row[1]), str(row[2]))
        console.print(table)

    experience = data.statistics["experience_stats"]
    plt.clear_figure()
    plt.title("Average Salary by Experience Level")
    plt.theme("pro")
    plt.bar([str(level) for level in experience["level"]], experience["avg_salary"].tolist())
    plt.show()


def render_model_info(console: Console, metadata: Optional[ModelMetadata]) -> None:
    if metadata is None:
        console.print("[yellow]No cached model found.[/yellow]")
        return
    table = Table(title="Cached Model")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Version", metadata.version)
    table.add_row("Trained At", metadata.trained_at or "unknown")
    table.add_row("Data Size", str(metadata.data_size))
    table.add_row("Features", ", ".join(metadata.features))
    table.add_row("Job Titles", str(len(metadata.top_job_titles)))
    console.print(table)


MONTHS_PER_YEAR = 12
WORK_HOURS_PER_YEAR = 2080


def margin_percent(pipeline: SalaryPipeline) -> int:
    return round_half_up(pipeline.config["prediction"]["confidence_margin"] * 100)


def summarize_prediction(pipeline: SalaryPipeline, data: ProcessedData, profile: JobProfile, result: Any) -> Dict[str, Any]:
    """Derive pay equivalents and the comparison with similar jobs for a prediction.

    Args:
        pipeline (SalaryPipeline): Pipeline whose analytics filter the dataset.
        data (ProcessedData): Loaded dataset.
        profile (JobProfile): Profile that was predicted.
        result (Any): Prediction result.

    Returns:
        Dict[str, Any]: ``monthly``, ``hourly``, ``similar`` stats and ``vs_similar_pct``
        (None when no similar jobs exist).
    """
    similar = pipeline.analytics.filter_profile_stats(
        data.raw_data,
        job_title=profile.job_title,
        experience_level=profile.experience_level,
        employment_type=profile.employment_type,
        company_size=profile.company_size,
    )
    vs_similar_pct = None
    if similar["count"] and similar["avg_salary"] > 0:
        vs_similar_pct = round((result.salary - similar["avg_salary"]) / similar["avg_salary"] * 100, 1)
    return {
        "monthly": round_half_up(result.salary / MONTHS_PER_YEAR),
        "hourly": round_half_up(result.salary / WORK_HOURS_PER_YEAR),
        "similar": similar,
        "vs_similar_pct": vs_similar_pct,
    }


def render_prediction(console: Console, pipeline: SalaryPipeline, result: Any, summary: Dict[str, Any]) -> None:
    pct = margin_percent(pipeline)
    table = Table(title="Prediction Results")
    table.add_column("Estimate", style="cyan", no_wrap=True)
    table.add_column("Amount", style="magenta", justify="right")
    table.add_row("Predicted Salary", format_currency(result.salary))
    table.add_row(f"Low (-{pct}%)", format_currency(result.low))
    table.add_row(f"High (+{pct}%)", format_currency(result.high))
    table.add_row("Monthly", format_currency(summary["monthly"]))
    table.add_row("Hourly", format_currency(summary["hourly"]))
    console.print(table)

    if result.unknown_fields:
        console.print(
            f"[yellow]Not seen in training data: {', '.join(result.unknown_fields)}. "
            f"The estimate is less reliable.[/yellow]"
        )

    similar = summary["similar"]
    if similar["count"]:
        console.print(
            f"[dim]{similar['count']} similar jobs: avg {format_currency(similar['avg_salary'])}, "
            f"range {format_currency(similar['min_salary'])} - {format_currency(similar['max_salary'])}[/dim]"
        )
    if summary["vs_similar_pct"] is not None:
        console.print(f"vs similar jobs average: {summary['vs_similar_pct']:+.1f}%")


def main():
    parser = argparse.ArgumentParser(description="Salary Prediction CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--csv", default=None, help="Path to dataset CSV (defaults to config)")
    parser.add_argument("--config", default="config.json", help="Path to config JSON")
    parser.add_argument("--title", type=str, help="Job title")
    parser.add_argument("--level", type=str, help="Experience level (EN, MI, SE, EX)")
    parser.add_argument("--employment-type", type=str, help="Employment type (FT, PT, CT, FL)")
    parser.add_argument("--size", type=str, help="Company size (S, M, L)")
    parser.add_argument("--remote", type=int, default=50, help="Remote ratio 0-100")
    parser.add_argument("--year", type=int, default=2024, help="Work year")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    parser.add_argument("--stats", action="store_true", help="Show dataset statistics and exit")
    parser.add_argument("--info", action="store_true", help="Show cached model metadata and exit")
    parser.add_argument("--clear-cache", action="store_true", help="Clear the cached model first")

    args = parser.parse_args()

    log_level = logging.INFO if args.verbose else logging.WARNING
    # JSON mode keeps stdout clean by logging to stderr
    setup_logging(level=log_level, stream=sys.stderr if args.json else None)

    console = Console(stderr=args.json)
    if not args.json:
        console.print("[bold green]Welcome to the Salary Prediction CLI[/bold green]")

    load_config(args.config)
    pipeline = SalaryPipeline()

    if args.clear_cache:
        pipeline.clear_cache()
        console.print("[dim]Cleared cached model.[/dim]")

    if args.info:
        render_model_info(console, pipeline.get_model_info())
        return

    try:
        data = pipeline.load_and_process_data(args.csv)
        if args.stats:
            render_statistics(console, data)
            return
        predictor: SalaryPredictor = pipeline.get_or_train_model(data)
    except (SalaryPipelineError, FileNotFoundError) as e:
        message = getattr(e, "message", str(e))
        if args.json:
            print(json.dumps({"error": message, "code": getattr(e, "code", "DATASET_NOT_FOUND")}))
        else:
            console.print(f"[bold red]{message}[/bold red]")
            console.print("Retry, or run again with --clear-cache.")
        sys.exit(1)

    profile_args = [args.title, args.level, args.employment_type, args.size]
    non_interactive = all(profile_args)
    if not non_interactive and any(profile_args):
        console.print(
            "[bold red]Error: For non-interactive mode, you must supply --title, --level, "
            "--employment-type, and --size.[/bold red]"
        )
        sys.exit(1)

    while True:
        try:
            if non_interactive:
                profile = JobProfile(
                    job_title=args.title,
                    experience_level=args.level.upper(),
                    employment_type=args.employment_type.upper(),
                    company_size=args.size.upper(),
                    remote_ratio=args.remote,
                    work_year=args.year,
                )
            else:
                profile = collect_profile(data.top_job_titles)

            result = predictor.predict_profile(profile)

            summary = summarize_prediction(pipeline, data, profile, result)
            if args.json:
                print(json.dumps({"profile": profile.model_dump(), **result.to_dict(), **summary}, indent=2))
            else:
                render_prediction(console, pipeline, result, summary)

            if non_interactive:
                break

            cont = input("\nPredict another? (y/n): ").strip().lower()
            if cont != "y":
                console.print("[bold]Goodbye![/bold]")
                break

        except KeyboardInterrupt:
            if not args.json:
                console.print("\n[bold]Goodbye![/bold]")
            break
        except (PredictionFailure, ValidationError) as e:
            if args.json:
                print(json.dumps({"error": str(e)}))
                sys.exit(1)
            logger.error(f"Prediction failed: {e}")
            console.print(f"[bold red]Prediction failed: {e}[/bold red]")
            if non_interactive:
                sys.exit(1)


if __name__ == "__main__":
    main()
