from __future__ import annotations

from datetime import date
import json

import typer
from rich import print
from sqlmodel import Session

from wrap_cli.config import (
    get_user_by_email,
    list_user_settings,
    resolve_acting_user_email,
    update_user_setting,
)
from wrap_cli.day_view import TIME_SECTIONS, build_day_summary, day_payload
from wrap_cli.db import get_initialized_engine, initialize_database
from wrap_cli.errors import DatabaseNotInitializedError, NotFoundError, PushConfigurationError, ValidationError
from wrap_cli.habits import (
    create_habit,
    delete_habit,
    delete_tag,
    find_tag_by_name,
    list_habits,
    list_tags,
    tag_habit,
    tags_for_habit,
    untag_habit,
    update_habit,
)
from wrap_cli.models import Habit, TimeBlock, User
from wrap_cli.notifications import send_reminders
from wrap_cli.push import WebPushTransport, delete_subscription, register_subscription
from wrap_cli.streaks import streak_stats
from wrap_cli.summaries import build_period_summary, summary_payload
from wrap_cli.time_blocks import (
    clear_day,
    delete_time_block,
    duration_hours,
    list_blocks_for_date,
    log_time,
    time_range_display,
    update_time_block,
)
from wrap_cli.timeutil import format_hours, local_today, parse_date_ymd, parse_hour, utc_now

app = typer.Typer(
    name="wrap",
    help="Time-block habit tracker.",
    no_args_is_help=True,
)
habit_app = typer.Typer(help="Manage habits.")
tag_app = typer.Typer(help="Tag habits and manage tags.")
log_app = typer.Typer(help="Log, edit and clear time blocks.")
config_app = typer.Typer(help="Manage per-user settings.")
push_app = typer.Typer(help="Manage push subscriptions.")
notify_app = typer.Typer(help="Send habit reminders.")
app.add_typer(habit_app, name="habit")
app.add_typer(tag_app, name="tag")
app.add_typer(log_app, name="log")
app.add_typer(config_app, name="config")
app.add_typer(push_app, name="push")
app.add_typer(notify_app, name="notify")

_USER_OPTION_HELP = "Acting user email (default: $WRAP_USER_EMAIL or me@localhost)."
INSIGHT_PERIODS: tuple[str, ...] = ("week", "month", "year")


def _parse_date(value: str) -> date:
    try:
        return parse_date_ymd(value)
    except ValueError as exc:
        raise typer.BadParameter("Invalid --date format. Expected YYYY-MM-DD.") from exc


def _parse_hour(value: str, field_name: str) -> float:
    try:
        return parse_hour(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid --{field_name} format. Expected H, H.5 or HH:MM.") from exc


def _open_session() -> Session:
    try:
        return Session(get_initialized_engine())
    except DatabaseNotInitializedError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def _get_user(session: Session, email: str | None) -> User:
    try:
        return get_user_by_email(session, resolve_acting_user_email(email))
    except NotFoundError as exc:
        raise typer.BadParameter(f"{exc} Run 'wrap init' first.") from exc


def _today_for(user: User) -> date:
    return local_today(utc_now(), user.time_zone)


def _format_habit(habit: Habit, tags: list[str] | None = None) -> str:
    line = f'id={habit.id} color={habit.color_token} name="{habit.name}"'
    if not habit.active:
        line += " (inactive)"
    if tags:
        line += f' tags="{", ".join(tags)}"'
    return line


def _format_block(block: TimeBlock, habit_name: str | None = None) -> str:
    line = f"id={block.id} {block.logged_on.isoformat()} {time_range_display(block)} ({format_hours(duration_hours(block))})"
    if habit_name is not None:
        line += f' habit="{habit_name}"'
    if block.notes:
        line += f' notes="{block.notes}"'
    return line


@app.callback()
def root() -> None:
    """Time-block habit tracker entrypoint."""


@app.command()
def init(
    email: str | None = typer.Option(None, "--email", help=_USER_OPTION_HELP),
) -> None:
    """Initialize DB, run migrations, and seed the default user."""
    try:
        db_path = initialize_database(resolve_acting_user_email(email))
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    print(f"[green]Initialized database:[/green] {db_path}")


# --- Habit commands ---


@habit_app.command("add")
def habit_add(
    name: str = typer.Argument(..., help="Habit name."),
    description: str | None = typer.Option(None, "--description", help="Optional description."),
    color: int | None = typer.Option(None, "--color", help="Color token 1..8 (default: next unused)."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Create a habit."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            habit = create_habit(session, user, name=name, description=description, color_token=color)
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(_format_habit(habit))


@habit_app.command("list")
def habit_list(
    tag: str | None = typer.Option(None, "--tag", help="Only habits with this tag."),
    include_inactive: bool = typer.Option(False, "--all", help="Include inactive habits."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """List habits, oldest first."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        habits = list_habits(session, user, tag=tag, include_inactive=include_inactive)

        if not habits:
            typer.echo("No habits.")
            return

        for habit in habits:
            tags = [t.name for t in tags_for_habit(session, habit.id)]
            typer.echo(_format_habit(habit, tags))


@habit_app.command("update")
def habit_update(
    habit_id: int = typer.Argument(..., help="Habit ID."),
    name: str | None = typer.Option(None, "--name", help="New name."),
    description: str | None = typer.Option(None, "--description", help="New description."),
    color: int | None = typer.Option(None, "--color", help="Color token 1..8."),
    active: bool | None = typer.Option(None, "--active/--inactive", help="Activate or archive."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Rename, recolor, or (de)activate a habit."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            habit = update_habit(
                session,
                user,
                habit_id,
                name=name,
                description=description,
                color_token=color,
                active=active,
            )
        except (ValidationError, NotFoundError) as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(_format_habit(habit))


@habit_app.command("delete")
def habit_delete(
    habit_id: int = typer.Argument(..., help="Habit ID."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Delete a habit together with its time blocks and tags."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            delete_habit(session, user, habit_id)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"deleted habit_id={habit_id}")


# --- Tag commands ---


@tag_app.command("add")
def tag_add(
    habit_id: int = typer.Argument(..., help="Habit ID."),
    name: str = typer.Argument(..., help="Tag name."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Tag a habit, creating the tag on first use."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            tag = tag_habit(session, user, habit_id, name)
        except (ValidationError, NotFoundError) as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(f'habit_id={habit_id} tag_id={tag.id} tag="{tag.name}"')


@tag_app.command("remove")
def tag_remove(
    habit_id: int = typer.Argument(..., help="Habit ID."),
    name: str = typer.Argument(..., help="Tag name."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Remove a tag from a habit."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            untag_habit(session, user, habit_id, name)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f'habit_id={habit_id} untagged="{name.strip().lower()}"')


@tag_app.command("list")
def tag_list(
    popular: bool = typer.Option(False, "--popular", help="Sort by number of tagged habits."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """List tags alphabetically or by popularity."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        tags = list_tags(session, user, order="popularity" if popular else "name")

    if not tags:
        typer.echo("No tags.")
        return

    for tag in tags:
        typer.echo(f'id={tag.id} name="{tag.name}" habits={tag.taggings_count}')


@tag_app.command("delete")
def tag_delete(
    name: str = typer.Argument(..., help="Tag name."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Delete a tag from every habit."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            tag = find_tag_by_name(session, user, name)
            delete_tag(session, user, tag.id)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f'deleted tag="{name.strip().lower()}"')


# --- Log commands ---


@log_app.command("add")
def log_add(
    habit: str = typer.Argument(..., help="Habit name (created if missing)."),
    start: str = typer.Option(..., "--start", help="Start hour: 9, 9.5 or 09:30."),
    end: str = typer.Option(..., "--end", help="End hour: 11, 11.5 or 11:30."),
    date_value: str | None = typer.Option(None, "--date", help="Date in YYYY-MM-DD (default: today)."),
    notes: str | None = typer.Option(None, "--notes", help="Optional notes."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Log a time block against a habit."""
    start_hour = _parse_hour(start, "start")
    end_hour = _parse_hour(end, "end")

    with _open_session() as session:
        user = _get_user(session, user_email)
        logged_on = _parse_date(date_value) if date_value else _today_for(user)
        try:
            block = log_time(
                session,
                user,
                habit_name=habit,
                logged_on=logged_on,
                start_hour=start_hour,
                end_hour=end_hour,
                notes=notes,
            )
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc

        print(
            f"[green]Logged[/green] {format_hours(duration_hours(block))} of {habit.strip()} "
            f"on {block.logged_on.isoformat()} ({time_range_display(block)})"
        )


@log_app.command("update")
def log_update(
    block_id: int = typer.Argument(..., help="Time block ID."),
    start: str | None = typer.Option(None, "--start", help="New start hour."),
    end: str | None = typer.Option(None, "--end", help="New end hour."),
    date_value: str | None = typer.Option(None, "--date", help="New date YYYY-MM-DD."),
    habit_id: int | None = typer.Option(None, "--habit-id", help="Move to another habit."),
    notes: str | None = typer.Option(None, "--notes", help="Replace notes (empty string clears)."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Edit a logged time block."""
    changes: dict[str, object] = {}
    if start is not None:
        changes["start_hour"] = _parse_hour(start, "start")
    if end is not None:
        changes["end_hour"] = _parse_hour(end, "end")
    if date_value is not None:
        changes["logged_on"] = _parse_date(date_value)
    if habit_id is not None:
        changes["habit_id"] = habit_id
    if notes is not None:
        changes["notes"] = notes

    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            block = update_time_block(session, user, block_id, **changes)
        except (ValidationError, NotFoundError) as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(_format_block(block))


@log_app.command("delete")
def log_delete(
    block_id: int = typer.Argument(..., help="Time block ID."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Delete one time block."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            delete_time_block(session, user, block_id)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"deleted block_id={block_id}")


@log_app.command("clear")
def log_clear(
    date_value: str = typer.Option(..., "--date", help="Date in YYYY-MM-DD."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Remove every time block logged on a date."""
    day = _parse_date(date_value)
    with _open_session() as session:
        user = _get_user(session, user_email)
        removed = clear_day(session, user, day)
    typer.echo(f"cleared date={day.isoformat()} removed={removed}")


@log_app.command("list")
def log_list(
    date_value: str | None = typer.Option(None, "--date", help="Date in YYYY-MM-DD (default: today)."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """List time blocks for a date."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        day = _parse_date(date_value) if date_value else _today_for(user)
        blocks = list_blocks_for_date(session, user, day)
        if not blocks:
            typer.echo(f"No time blocks for {day.isoformat()}.")
            return
        for block in blocks:
            habit = session.get(Habit, block.habit_id)
            typer.echo(_format_block(block, habit.name if habit else None))


# --- Views ---


@app.command("day")
def day_view(
    date_value: str | None = typer.Option(None, "--date", help="Date in YYYY-MM-DD (default: today)."),
    tag: str | None = typer.Option(None, "--tag", help="Only habits with this tag."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Show one day's timeline and breakdown."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        today = _today_for(user)
        day = _parse_date(date_value) if date_value else today
        summary = build_day_summary(session, user, day=day, today=today, tag=tag)

        if as_json:
            typer.echo(json.dumps(day_payload(summary), indent=2))
            return

        print(f"[bold]{summary.period.label}[/bold] total={format_hours(summary.total_hours)}")
        if summary.is_empty:
            print("[yellow]Nothing logged.[/yellow]")
        for section in TIME_SECTIONS:
            overlay = summary.work_overlay(section)
            header = section.name
            if overlay is not None:
                header += f" (work +{overlay.offset:g}h for {overlay.length:g}h)"
            print(f"[bold]{header}[/bold]")
            for hour in section.hours:
                for block in summary.time_blocks_for_hour(hour):
                    habit = next((h for h in summary.habits if h.id == block.habit_id), None)
                    typer.echo(f"  {_format_block(block, habit.name if habit else None)}")
        for entry in summary.activity_breakdown:
            typer.echo(f"- {entry.habit.name}: {format_hours(round(entry.hours, 1))}")
        typer.echo(f"streak current={summary.streaks.current} longest={summary.streaks.longest}")


@app.command("insights")
def insights(
    period: str = typer.Option("week", "--period", help="Period: week, month, year."),
    date_value: str | None = typer.Option(None, "--date", help="Any date inside the period (default: today)."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Summarize logged time for a week, month or year."""
    normalized = period.strip().lower()
    if normalized not in INSIGHT_PERIODS:
        normalized = "week"

    with _open_session() as session:
        user = _get_user(session, user_email)
        today = _today_for(user)
        ref = _parse_date(date_value) if date_value else None
        summary = build_period_summary(session, user, kind=normalized, today=today, ref=ref)

    if as_json:
        typer.echo(json.dumps(summary_payload(summary), indent=2))
        return

    header = f"[bold]{summary.period.label}[/bold] ({summary.period_start.isoformat()}..{summary.period_end.isoformat()})"
    if summary.is_current:
        header += " current"
    print(header)
    if summary.is_empty:
        print("[yellow]No time logged in this period.[/yellow]")
    typer.echo(
        f"total={format_hours(summary.total_hours)} active_days={summary.active_days_count} "
        f"daily_average={format_hours(summary.daily_average)}"
    )
    for label, value in zip(summary.period.chart_labels(), summary.chart_values()):
        typer.echo(f"  {label:>3} {format_hours(value)}")
    for entry in summary.hours_by_habit:
        typer.echo(f"- {entry.name}: {format_hours(entry.hours)}")
    typer.echo(f"streak current={summary.current_streak} longest={summary.longest_streak}")
    typer.echo(
        f"previous={summary.previous_period_date.isoformat()} "
        f"next={summary.next_period_date.isoformat() if summary.can_navigate_next else '-'}"
    )


@app.command("streak")
def streak(
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Show current and longest logging streaks."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        stats = streak_stats(session, user.id, _today_for(user))
    typer.echo(f"current={stats.current} longest={stats.longest}")


# --- Config commands ---


@config_app.command("show")
def config_show(
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Print all settings as key=value, sorted by key."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        settings = list_user_settings(user)

    for key, value in sorted(settings.items()):
        typer.echo(f"{key}={value}")


@config_app.command("set")
def config_set(
    key: str,
    value: str,
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Validate and store a setting."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            user = update_user_setting(session, user, key=key, value=value)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        settings = list_user_settings(user)

    typer.echo(f"{key}={settings.get(key, value)}")


# --- Push and reminders ---


@push_app.command("subscribe")
def push_subscribe(
    endpoint: str = typer.Option(..., "--endpoint", help="Push service endpoint URL."),
    p256dh: str = typer.Option(..., "--p256dh", help="Subscription p256dh key."),
    auth: str = typer.Option(..., "--auth", help="Subscription auth secret."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Register a browser push subscription."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            subscription = register_subscription(
                session, user, endpoint=endpoint, p256dh_key=p256dh, auth_key=auth
            )
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc
        typer.echo(f"subscription_id={subscription.id}")


@push_app.command("unsubscribe")
def push_unsubscribe(
    endpoint: str = typer.Option(..., "--endpoint", help="Push service endpoint URL."),
    user_email: str | None = typer.Option(None, "--user", help=_USER_OPTION_HELP),
) -> None:
    """Remove a push subscription."""
    with _open_session() as session:
        user = _get_user(session, user_email)
        try:
            delete_subscription(session, user, endpoint)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
    typer.echo("unsubscribed")


@notify_app.command("run")
def notify_run() -> None:
    """Send reminders due this hour. Intended to run hourly from cron or a scheduler."""
    try:
        transport = WebPushTransport.from_env()
    except PushConfigurationError as exc:
        print(f"[red]Reminders not sent:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    with _open_session() as session:
        result = send_reminders(session, now=utc_now(), transport=transport)

    print(
        "[green]Reminder run complete.[/green] "
        f"considered={result.users_considered} notified={result.users_notified} "
        f"suppressed={result.users_suppressed} delivered={result.delivered} "
        f"failed={result.failed} deregistered={result.deregistered}"
    )


def main() -> None:
    app()
