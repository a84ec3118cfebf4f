"""Command-line interface for git-weekly-snapshot."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .aggregator import week_statistics
from .backfill import detect_missing_weeks, process_backfill
from .comparator import compare_multiple_weeks, compare_weeks
from .config import Config, load_config
from .daily import collect_daily_summary, format_daily_summary, parse_day_spec
from .errors import SnapshotError
from .forges.github import GitHubClient
from .ingest import STATUS_SOFT_FAILURE, RunReport, run_week
from .logging_config import setup_logging
from .open_prs import fetch_open_pull_requests, format_age, open_pr_statistics
from .report import format_change, generate_markdown_report
from .scoring import score
from .storage import SnapshotStore
from .weeks import WeekCoordinate, describe_week, previous_week, resolve_week_spec, week_date_range

app = typer.Typer(help="Collect weekly GitHub activity snapshots and compare weeks")
console = Console()

# Exit code for a run that saved data but had failing repositories
EXIT_PARTIAL = 2

CONFIG_OPTION = typer.Option(
    "config.yaml",
    "--config",
    "-c",
    help="Path to configuration file",
    exists=True,
    file_okay=True,
    dir_okay=False,
)
WEEK_OPTION = typer.Option(
    "current",
    "--week",
    "-w",
    help="Week to use: current, last, YYYY-WW (e.g. 2025-52) or a date YYYY-MM-DD",
)


def main():
    """Entry point for the CLI application."""
    app()


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show errors"),
):
    setup_logging(verbose=verbose, quiet=quiet)


def _load_config(config_file: Path) -> Config:
    try:
        return load_config(config_file)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(1)


def _resolve_week(spec: str) -> WeekCoordinate:
    try:
        return resolve_week_spec(spec)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _build_client(config: Config) -> GitHubClient:
    if not config.token:
        console.print(
            "[red]Error: GITHUB_TOKEN not found.[/red] Set it in the environment, "
            "in a .env file or as 'token' in the configuration."
        )
        raise typer.Exit(1)
    return GitHubClient(
        token=config.token,
        endpoint=config.endpoint,
        rate_limit_threshold=config.rate_limit_threshold,
        max_quota_wait=config.max_quota_wait,
    )


def _print_run_report(report: RunReport) -> None:
    if report.up_to_date:
        console.print(f"[green]All data already collected for week {report.week}[/green]")
    elif report.saved:
        console.print(
            f"[green]Saved week {report.week}[/green] "
            f"(fetched {len(report.dates_fetched)} days)"
        )

    if report.results:
        table = Table(title="Repositories")
        table.add_column("Repository")
        table.add_column("Status")
        table.add_column("Commits", justify="right")
        table.add_column("PRs", justify="right")
        table.add_column("Reviews", justify="right")
        table.add_column("Error")
        for result in report.results:
            style = (
                "green"
                if not result.failed
                else "yellow" if result.status == STATUS_SOFT_FAILURE else "red"
            )
            table.add_row(
                result.repository,
                f"[{style}]{result.status}[/{style}]",
                str(result.commits),
                str(result.pull_requests),
                str(result.reviews),
                result.error or "",
            )
        console.print(table)

    if report.snapshot is not None:
        stats = week_statistics(report.snapshot)
        console.print(f"  Commits:       {stats.total_commits:,}")
        console.print(f"  PRs:           {stats.total_prs:,}")
        console.print(f"  Lines added:   [green]{stats.total_lines_added:,}[/green]")
        console.print(f"  Lines deleted: [red]{stats.total_lines_deleted:,}[/red]")
        console.print(f"  Active users:  {stats.active_users}")
        if stats.active_users:
            console.print(f"  Avg commits/user: {stats.average_commits_per_user}")
            console.print(f"  Avg PRs/user:     {stats.average_prs_per_user}")

    if report.is_partial:
        console.print(
            f"[yellow]Warning: partial data, {len(report.failed_repositories)} "
            "repositories failed[/yellow]"
        )


@app.command()
def fetch(
    config_file: Path = CONFIG_OPTION,
    week: str = WEEK_OPTION,
    force: bool = typer.Option(
        False, "--force", "-f", help="Re-fetch the whole week even if data already exists"
    ),
):
    """Fetch activity for a week and merge it into the stored snapshot.

    Only days without recorded activity are fetched unless --force is given.
    Exits with code 2 when some repositories failed but data was saved.
    """
    config = _load_config(config_file)
    coord = _resolve_week(week)
    client = _build_client(config)
    store = SnapshotStore(config.output_directory)

    console.print(f"[bold blue]Fetching data for {describe_week(coord)}[/bold blue]")
    if force:
        console.print("[yellow]Force refresh enabled - will re-fetch all data[/yellow]")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching {len(config.repositories)} repositories...", total=None)
            report = run_week(
                client,
                store,
                coord,
                config.repositories,
                force=force,
                include_reviews=config.include_reviews,
            )
    except SnapshotError as e:
        console.print(f"[red]Error fetching week data:[/red] {e}")
        raise typer.Exit(1)

    _print_run_report(report)
    if client.last_rate_limit:
        console.print(
            f"[dim]Rate limit: {client.last_rate_limit.remaining}/"
            f"{client.last_rate_limit.limit} remaining[/dim]"
        )
    if report.is_partial:
        raise typer.Exit(EXIT_PARTIAL)


@app.command()
def backfill(
    config_file: Path = CONFIG_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Fetch all missing weeks without asking"),
):
    """Detect weeks without a snapshot since start_date and fetch them."""
    config = _load_config(config_file)
    if config.start_date is None:
        console.print("[red]Error: backfill requires 'start_date' in the configuration[/red]")
        raise typer.Exit(1)

    store = SnapshotStore(config.output_directory)
    missing = detect_missing_weeks(store, config.start_date)
    if not missing:
        console.print("[green]No missing weeks! All data is up to date.[/green]")
        return

    console.print("[bold cyan]Missing Weeks:[/bold cyan]")
    for index, coord in enumerate(missing, start=1):
        start, end = week_date_range(coord)
        console.print(f"  [{index}] [cyan]{coord}[/cyan] [dim]({start} to {end})[/dim]")

    if not yes and not typer.confirm(
        f"Backfill {len(missing)} week(s)? This will make API calls to GitHub.", default=True
    ):
        console.print("[yellow]Backfill cancelled[/yellow]")
        return

    client = _build_client(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Backfilling...", total=None)

        def fetch_week(coord: WeekCoordinate) -> RunReport:
            progress.update(task, description=f"Fetching {describe_week(coord)}...")
            report = run_week(
                client, store, coord, config.repositories, include_reviews=config.include_reviews
            )
            if report.is_partial:
                failed = ", ".join(r.repository for r in report.failed_repositories)
                raise SnapshotError(f"partial data saved; failed repositories: {failed}")
            return report

        result = process_backfill(missing, fetch_week)

    console.print("\n[bold cyan]Backfill Summary[/bold cyan]")
    console.print(f"  Successful: [green]{len(result.successful)}[/green]")
    console.print(f"  Failed: [red]{len(result.failed)}[/red]")
    for coord, error in result.failed:
        console.print(f"  [dim]- {coord}: {error}[/dim]")

    if result.failed:
        raise typer.Exit(EXIT_PARTIAL)


@app.command()
def compare(config_file: Path = CONFIG_OPTION, week: str = WEEK_OPTION):
    """Compare a stored week with the week before it."""
    config = _load_config(config_file)
    coord = _resolve_week(week)
    store = SnapshotStore(config.output_directory)

    try:
        current = store.load(coord)
        previous = store.load(previous_week(coord))
    except SnapshotError as e:
        console.print(f"[red]Error loading snapshots:[/red] {e}")
        raise typer.Exit(1)

    if current is None:
        console.print(f"[red]No data stored for week {coord}[/red]")
        raise typer.Exit(1)

    comparison = compare_weeks(current, previous)
    if not comparison.has_previous_week:
        console.print(f"[yellow]No data for {previous_week(coord)}; comparing against zero[/yellow]")

    table = Table(title=f"Week {comparison.current_week} vs {comparison.previous_week or 'none'}")
    table.add_column("Metric")
    table.add_column("Current", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Change", justify="right")
    for name, result in comparison.team.items():
        table.add_row(name, str(result.current), str(result.previous), format_change(result))
    console.print(table)

    users = Table(title="Contributors")
    users.add_column("User")
    for name in comparison.team:
        users.add_column(name, justify="right")
    for username, results in comparison.users.items():
        users.add_row(
            username,
            *(f"{r.current} ({format_change(r)})" for r in results.values()),
        )
    console.print(users)


@app.command()
def trend(
    config_file: Path = CONFIG_OPTION,
    last: int = typer.Option(8, "--last", "-n", help="Number of most recent stored weeks"),
):
    """Show team totals and contributor scores over the most recent weeks."""
    config = _load_config(config_file)
    store = SnapshotStore(config.output_directory)
    coords = store.list()[-last:] if last > 0 else store.list()

    snapshots = list(store.load_many(coords).values())
    if not snapshots:
        console.print("[yellow]No stored weeks found[/yellow]")
        return

    series = compare_multiple_weeks(snapshots)

    team = Table(title="Team")
    team.add_column("Week")
    for column in ("Commits", "PRs", "Lines +", "Lines -", "Reviews", "Score"):
        team.add_column(column, justify="right")
    for rollup in series.team:
        m = rollup.metrics
        team.add_row(
            rollup.week,
            str(m.commits),
            str(m.prs),
            str(m.lines_added),
            str(m.lines_deleted),
            str(m.reviews_given),
            str(score(m).total),
        )
    console.print(team)

    scores = {
        username: [score(r.metrics).total for r in rollups]
        for username, rollups in series.users.items()
    }
    ranking = sorted(scores, key=lambda username: (-sum(scores[username]), username))

    users = Table(title="Contributor score by week")
    users.add_column("#", justify="right")
    users.add_column("User")
    for week_key in series.weeks:
        users.add_column(week_key, justify="right")
    users.add_column("Total", justify="right")
    for rank, username in enumerate(ranking, start=1):
        users.add_row(
            str(rank),
            username,
            *(str(total) for total in scores[username]),
            str(round(sum(scores[username]), 2)),
        )
    console.print(users)


@app.command()
def report(
    config_file: Path = CONFIG_OPTION,
    week: str = WEEK_OPTION,
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path (defaults to report-YYYY-WW.md)",
    ),
):
    """Generate a Markdown report for a stored week."""
    config = _load_config(config_file)
    coord = _resolve_week(week)
    store = SnapshotStore(config.output_directory)

    try:
        snapshot = store.load(coord)
        previous = store.load(previous_week(coord))
    except SnapshotError as e:
        console.print(f"[red]Error loading snapshots:[/red] {e}")
        raise typer.Exit(1)

    if snapshot is None:
        console.print(f"[red]No data stored for week {coord}[/red]")
        raise typer.Exit(1)

    output_path = output or Path(f"report-{coord}.md")
    try:
        generate_markdown_report(snapshot, previous, output_path)
    except OSError as e:
        console.print(f"[red]Error generating report:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]Report generated:[/bold green] {output_path}")


@app.command()
def weeks(config_file: Path = CONFIG_OPTION):
    """List the weeks that have a stored snapshot."""
    config = _load_config(config_file)
    store = SnapshotStore(config.output_directory)

    stored = store.list()
    if not stored:
        console.print("[yellow]No stored weeks found[/yellow]")
        return
    for coord in stored:
        console.print(describe_week(coord))


@app.command("open-prs")
def open_prs(config_file: Path = CONFIG_OPTION):
    """List the pull requests currently open across the configured repositories.

    Exits with code 2 when some repositories could not be fetched.
    """
    config = _load_config(config_file)
    client = _build_client(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(
            f"Fetching open PRs from {len(config.repositories)} repositories...", total=None
        )
        result = fetch_open_pull_requests(client, config.repositories)

    prs = result.pull_requests
    if prs:
        table = Table(title=f"Open Pull Requests ({len(prs)})")
        table.add_column("Repository")
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("Age", justify="right")
        table.add_column("Reviewers")
        for pr in prs:
            title = escape(pr.title)
            if pr.is_draft:
                title = f"[dim]{title} (draft)[/dim]"
            table.add_row(
                pr.repository,
                str(pr.number),
                title,
                pr.author,
                format_age(pr.created_at),
                ", ".join(pr.requested_reviewers),
            )
        console.print(table)
    else:
        console.print("[green]No open pull requests[/green]")

    stats = open_pr_statistics(prs)
    console.print(f"  Open PRs:         {stats.total}")
    console.print(f"  Authors:          {stats.unique_authors}")
    console.print(f"  Repositories:     {stats.repositories}")
    console.print(f"  Drafts:           {stats.drafts}")
    console.print(f"  Awaiting review:  {stats.awaiting_review}")
    console.print(f"  Average age:      {stats.average_age_days} days")
    console.print(f"  Oldest:           {stats.oldest_age_days} days")

    if result.failures:
        for error in result.failures:
            console.print(f"[red]Failed:[/red] {error}")
        raise typer.Exit(EXIT_PARTIAL)


@app.command()
def daily(
    config_file: Path = CONFIG_OPTION,
    day: str = typer.Option(
        "yesterday",
        "--date",
        "-d",
        help="Day to summarize: today, yesterday, -N, YYYY-MM-DD or YYMMDD",
    ),
    user: str = typer.Option(..., "--user", "-u", help="GitHub username to summarize"),
    compact: bool = typer.Option(False, "--compact", help="Print a single stand-up line"),
):
    """Summarize one contributor's activity on a single day."""
    config = _load_config(config_file)
    try:
        target = parse_day_spec(day)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    client = _build_client(config)

    console.print(f"[dim]Fetching activity for {user} on {target.isoformat()}...[/dim]")
    summary = collect_daily_summary(
        client, config.repositories, target, user, include_reviews=config.include_reviews
    )

    console.print(format_daily_summary(summary, compact=compact), markup=False, highlight=False)

    if summary.failures:
        for error in summary.failures:
            console.print(f"[red]Failed:[/red] {error}")
        raise typer.Exit(EXIT_PARTIAL)


@app.command()
def validate(config_file: Path = CONFIG_OPTION):
    """Validate the configuration file without fetching anything."""
    config = _load_config(config_file)
    console.print("[green]Configuration is valid[/green]")
    console.print(f"\nRepositories: {len(config.repositories)}")
    for repo in config.repositories:
        console.print(f"  {repo}")
    console.print(f"Output directory: {config.output_directory}")
    console.print(f"Start date: {config.start_date or 'not set'}")
    console.print(f"Token: {'set' if config.token else 'missing'}")


if __name__ == "__main__":
    main()
