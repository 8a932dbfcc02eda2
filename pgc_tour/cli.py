"""
Command-line interface for the PGC Tour engine.
Built with Click and Rich for terminal output.
"""

import json
import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
import pandas as pd
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from .api import DataGolfAPI
from .config import DEFAULT_PAR, GROUP_LIMITS, REMAINDER_GROUP_NAME, get_config
from .database import Database, DatabaseError
from .freshness import DataService
from .groups import assign_groups
from .models import ResultStatus, StandingsResult
from .playoffs import build_playoffs, playoff_brackets
from .results import update_tournament_teams
from .standings import apply_totals, verify_tour_card_totals

console = Console()

GROUP_NAMES = [limit.name for limit in GROUP_LIMITS] + [REMAINDER_GROUP_NAME]
PLAYOFF_STYLES = {"gold": "bold yellow", "silver": "white"}


def _require_api_key():
    if not get_config().datagolf_api_key:
        raise click.ClickException(
            "DATAGOLF_API_KEY not configured. Get a key at https://datagolf.com/api-access"
        )


def _service(db: Database, with_rankings: bool = False) -> DataService:
    config = get_config()
    rankings = None
    if with_rankings:
        _require_api_key()
        # The service cache retries each fetch itself
        rankings = DataGolfAPI(db=db, max_retries=1)
    return DataService(db, rankings=rankings, config=config)


def _open_database() -> Database:
    try:
        return Database()
    except DatabaseError as e:
        raise click.ClickException(str(e))


def _report_failure(result) -> bool:
    """Print a non-success result. Returns True when there is nothing to show."""
    if result.status == ResultStatus.SUCCESS:
        return False
    color = "red" if result.status == ResultStatus.ERROR else "yellow"
    console.print(f"[{color}]{result.message or result.status.value}[/]")
    return True


def standings_frame(result: StandingsResult) -> pd.DataFrame:
    """Flatten standings into one row per tour card."""
    rows = []
    for tour_standings in result.standings_by_tour:
        for entry in tour_standings.entries:
            card = entry.tour_card
            rows.append({
                "tour": tour_standings.tour.name,
                "position": entry.position,
                "tour_card_id": card.id,
                "member": card.display_name,
                **entry.totals.as_dict(),
            })
    columns = ["tour", "position", "tour_card_id", "member",
               "points", "earnings", "win", "top_ten", "made_cut", "appearances"]
    return pd.DataFrame(rows, columns=columns)


@click.group()
@click.version_option(version="1.0.0", prog_name="PGC Tour Engine")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """PGC Tour Engine - groups, leaderboards, standings and playoffs."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def load(file: Path):
    """Import a JSON season export."""
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {file}: {e}")

    db = _open_database()
    counts = db.load_snapshot(data)

    table = Table(title=f"Loaded season {data['season_id']}", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Records")
    table.add_column("Count", justify="right", style="green")
    for kind, count in counts.items():
        table.add_row(kind.replace("_", " ").title(), str(count))
    console.print(table)


@cli.command()
@click.argument("tournament_id")
@click.option("--tour", default="pga", show_default=True, help="Data Golf tour the field is drawn from")
@click.option("--rank/--no-rank", default=True, help="Rank the stored field by current skill estimates")
def field(tournament_id: str, tour: str, rank: bool):
    """Import a tournament's field from Data Golf."""
    _require_api_key()
    db = _open_database()
    tournament = db.fetch_tournament(tournament_id)
    if tournament is None:
        raise click.ClickException(f"Tournament {tournament_id} not found")

    api = DataGolfAPI(db=db)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        task = progress.add_task(f"Fetching {tour.upper()} field for {tournament.name}...", total=None)
        entries = api.get_field_updates(tournament_id, tour=tour)
        progress.update(task, completed=True)
    if not entries:
        console.print(f"[yellow]No field available: {api.last_error or 'empty field'}[/]")
        return

    # Golfers already stored keep their scores and group assignments
    stored = {golfer.api_id for golfer in db.fetch_golfers(tournament_id)}
    added = db.save_golfers(g for g in entries if g.api_id not in stored)
    console.print(f"[green]Added {added} golfers ({len(entries)} in the field) to {tournament.name}[/]")

    if rank:
        ranked = api.refresh_skill_estimates(tournament_id)
        if ranked:
            console.print(f"[green]Updated skill estimates for {ranked} golfers[/]")
        else:
            console.print(f"[yellow]Skill estimates unchanged: {api.last_error or 'no rankings'}[/]")


@cli.command()
@click.argument("tournament_id")
@click.option("--field-size", "-n", default=None, type=int, help="Field size the group percentages apply to")
@click.option("--refresh-rankings", is_flag=True, help="Rank the field with fresh Data Golf skill estimates")
@click.option("--save", is_flag=True, help="Save group assignments to the database")
def groups(tournament_id: str, field_size: Optional[int], refresh_rankings: bool, save: bool):
    """Build the five golfer groups for a tournament."""
    db = _open_database()
    with _service(db, with_rankings=refresh_rankings) as service:
        result = service.groups(tournament_id, field_size=field_size, refresh_rankings=refresh_rankings)

    if _report_failure(result):
        return

    console.print(Panel.fit(
        f"[bold green]{result.tournament.name}[/]",
        subtitle=f"{result.golfers_processed} golfers in {result.groups_created} groups",
    ))
    for index, group in enumerate(result.groups):
        table = Table(
            title=f"Group {index + 1}: {GROUP_NAMES[index]} ({len(group)})",
            box=box.SIMPLE,
            header_style="bold cyan",
        )
        table.add_column("Rank", justify="right", width=5)
        table.add_column("Golfer", width=28)
        table.add_column("OWGR", justify="right", width=6)
        table.add_column("Rating", justify="right", width=7)
        for golfer in group:
            table.add_row(
                f"{golfer.skill_estimate:.0f}" if golfer.skill_estimate is not None else "-",
                golfer.player_name,
                str(golfer.world_rank or "-"),
                f"{golfer.rating:.2f}" if golfer.rating is not None else "-",
            )
        console.print(table)

    if save:
        saved = db.save_golfers(assign_groups(result.groups))
        console.print(f"[green]Saved group assignments for {saved} golfers[/]")


@cli.command()
@click.argument("tournament_id")
@click.option("--tour", "-t", default=None, help="Only show this tour (name or short form)")
@click.option("--force", is_flag=True, help="Force refresh (ignore cache)")
def leaderboard(tournament_id: str, tour: Optional[str], force: bool):
    """Show a tournament's per-tour leaderboard."""
    db = _open_database()
    with _service(db) as service:
        result = service.leaderboard(tournament_id, force_refresh=force)

    if _report_failure(result):
        return

    groups = result.teams_by_tour
    if tour:
        selected = result.for_tour(tour)
        if selected is None:
            raise click.ClickException(f"No teams on tour {tour!r}")
        groups = (selected,)

    for group in groups:
        table = Table(
            title=f"{result.tournament.name} - {group.tour.name} ({group.team_count} teams)",
            box=box.ROUNDED,
            header_style="bold cyan",
        )
        table.add_column("Pos", justify="center", width=5)
        table.add_column("Member", width=24)
        table.add_column("Score", justify="right", width=6)
        table.add_column("Golfers", width=50)
        for entry in group.teams:
            team = entry.team
            table.add_row(
                team.position or "-",
                entry.tour_card.display_name,
                f"{team.score:+g}" if team.score is not None else "-",
                ", ".join(f"{g.player_name} ({g.position or '-'})" for g in entry.golfers),
            )
        console.print(table)

    console.print(f"\n[cyan]Source:[/] {result.data_source.value}  [cyan]Teams:[/] {result.total_teams}")
    for message in result.diagnostics:
        console.print(f"[yellow]! {message}[/]")


@cli.command("score-teams")
@click.argument("tournament_id")
@click.option("--par", default=DEFAULT_PAR, show_default=True, type=int, help="Course par")
def score_teams(tournament_id: str, par: int):
    """Recompute team scores, positions and (once final) points and earnings."""
    db = _open_database()
    tournament = db.fetch_tournament(tournament_id)
    if tournament is None:
        raise click.ClickException(f"Tournament {tournament_id} not found")

    with _service(db) as service:
        snapshot = service.load_tournament_snapshot(tournament)
    if not snapshot.tournament.teams:
        console.print(f"[yellow]No teams for {tournament.name}[/]")
        return

    teams = update_tournament_teams(snapshot, par=par)
    saved = db.save_teams(teams)

    table = Table(title=f"{tournament.name} Team Scores", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Team", justify="right", width=6)
    table.add_column("Tour Card", width=14)
    table.add_column("Pos", justify="center", width=5)
    table.add_column("Score", justify="right", width=6)
    table.add_column("Today", justify="right", width=6)
    table.add_column("Points", justify="right", style="green", width=7)
    table.add_column("Earnings", justify="right", width=10)
    for team in teams:
        table.add_row(
            str(team.id),
            team.tour_card_id,
            team.position or "-",
            f"{team.score:+g}" if team.score is not None else "-",
            f"{team.today:+g}" if team.today is not None else "-",
            f"{team.points:g}",
            f"${team.earnings:,.2f}",
        )
    console.print(table)
    console.print(f"[green]Saved {saved} teams[/]")


@cli.command()
@click.argument("season_id")
@click.option("--csv", "csv_path", default=None, type=click.Path(dir_okay=False, path_type=Path),
              help="Also write the standings to a CSV file")
def standings(season_id: str, csv_path: Optional[Path]):
    """Show season standings per tour."""
    db = _open_database()
    with _service(db) as service:
        result = service.season_standings(season_id)

    if _report_failure(result):
        return

    for tour_standings in result.standings_by_tour:
        table = Table(title=f"{tour_standings.tour.name} Standings", box=box.ROUNDED, header_style="bold cyan")
        table.add_column("Pos", justify="center", width=5)
        table.add_column("Member", width=24)
        table.add_column("Points", justify="right", style="green", width=8)
        table.add_column("Earnings", justify="right", width=10)
        table.add_column("Wins", justify="center", width=5)
        table.add_column("Top 10", justify="center", width=6)
        table.add_column("Cuts", justify="center", width=5)
        for entry in tour_standings.entries:
            totals = entry.totals
            table.add_row(
                entry.position,
                entry.tour_card.display_name,
                f"{totals.points:g}",
                f"${totals.earnings:,.2f}",
                str(totals.win),
                str(totals.top_ten),
                f"{totals.made_cut}/{totals.appearances}",
            )
        console.print(table)

    for message in result.diagnostics:
        console.print(f"[yellow]! {message}[/]")

    if csv_path:
        standings_frame(result).to_csv(csv_path, index=False)
        console.print(f"[green]Wrote standings to {csv_path}[/]")


@cli.command()
@click.argument("season_id")
def playoffs(season_id: str):
    """Show the playoff cut per tour."""
    db = _open_database()
    with _service(db) as service:
        result = service.playoffs(season_id)

    if _report_failure(result):
        return

    for tour_playoffs in result.playoffs_by_tour:
        table = Table(
            title=f"{tour_playoffs.tour.name} Playoffs {tour_playoffs.playoff_spots}",
            box=box.ROUNDED,
            header_style="bold cyan",
        )
        table.add_column("Group", width=8)
        table.add_column("Seed", justify="center", width=5)
        table.add_column("Member", width=24)
        table.add_column("Points", justify="right", width=8)
        for team in tour_playoffs.gold_teams + tour_playoffs.silver_teams:
            table.add_row(
                team.playoff_type.title(),
                str(team.playoff_position),
                team.tour_card.display_name,
                f"{team.entry.totals.points:g}",
                style=PLAYOFF_STYLES[team.playoff_type],
            )
        console.print(table)
        console.print(f"[dim]{len(tour_playoffs.unqualified)} of {tour_playoffs.total_teams} teams did not qualify[/]")

    console.print(f"\n[cyan]Gold:[/] {result.total_gold_teams}  [cyan]Silver:[/] {result.total_silver_teams}")
    for message in result.diagnostics:
        console.print(f"[yellow]! {message}[/]")


@cli.command()
@click.argument("season_id")
def verify(season_id: str):
    """Check stored tour card totals against team results."""
    db = _open_database()
    with _service(db) as service:
        season = service.load_season(season_id)

    mismatches = verify_tour_card_totals(season, as_of=datetime.now())
    if not mismatches:
        console.print(f"[green]All {len(season.tour_cards)} tour cards match their team results[/]")
        return

    table = Table(title="Tour Card Total Mismatches", box=box.ROUNDED, header_style="bold red")
    table.add_column("Tour Card")
    table.add_column("Field")
    table.add_column("Stored", justify="right")
    table.add_column("Computed", justify="right")
    for mismatch in mismatches:
        table.add_row(mismatch.tour_card_id, mismatch.field, f"{mismatch.stored:g}", f"{mismatch.computed:g}")
    console.print(table)
    sys.exit(1)


@cli.command("sync-standings")
@click.argument("season_id")
def sync_standings(season_id: str):
    """Write recomputed tour card totals and playoff brackets."""
    db = _open_database()
    with _service(db) as service:
        season = service.load_season(season_id)

    now = datetime.now()
    cards = apply_totals(season, as_of=now)
    updated = db.update_tour_card_totals(cards)
    brackets = playoff_brackets(build_playoffs(season, as_of=now))
    db.update_playoff_brackets(brackets)

    qualified = sum(1 for bracket in brackets.values() if bracket)
    console.print(f"[green]Updated {updated} tour cards; {qualified} qualified for the playoffs[/]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
