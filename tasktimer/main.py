"""tasktimer command line.

Usage:
    tasktimer run timer.yaml
    tasktimer run timer.yaml --interval 200 --max-ticks 50
    tasktimer validate timer.yaml
"""
import threading

import click

from .config import settings
from .log import setup_logging
from .scheduler import (
    ConfigError,
    EventType,
    TaskTimerError,
    TimerEvent,
    TimerOptions,
)
from .scheduler.loader import build_timer, load_definition
from .scheduler.schedule import duration_to_human


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=settings.log_level,
    show_default=True,
    help="Set logging level.",
)
@click.option("--log-json/--no-log-json", default=settings.log_json, help="Log JSON lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_json: bool) -> None:
    """Run periodic tasks on a single ticking timer."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    setup_logging(level=log_level, serialize=log_json)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--interval", type=click.IntRange(min=1), default=None, help="Tick interval in ms.")
@click.option(
    "--stop-on-completed/--no-stop-on-completed",
    default=None,
    help="Stop once every task has completed.",
)
@click.option("--max-ticks", type=click.IntRange(min=1), default=None, help="Stop after N ticks.")
def run(file: str, interval: int | None, stop_on_completed: bool | None, max_ticks: int | None) -> None:
    """Run the tasks defined in FILE until the timer stops.

    Without --max-ticks the command also ends once every task has completed.
    """
    try:
        timer = build_timer(
            file,
            overrides={"interval": interval, "stop_on_completed": stop_on_completed},
            defaults=TimerOptions.from_settings(settings),
        )
    except TaskTimerError as e:
        raise click.ClickException(str(e)) from e

    stopped = threading.Event()

    def on_task_completed(event: TimerEvent) -> None:
        task = event.data
        click.echo(f"Task '{task.name}' completed ({task.current_runs} runs)")

    def on_completed(event: TimerEvent) -> None:
        click.echo("All tasks completed")
        if not max_ticks:
            # Nothing is left to run
            event.source.stop()

    def on_tick(event: TimerEvent) -> None:
        if max_ticks and event.source.tick_count >= max_ticks:
            event.source.stop()

    timer.on(EventType.STOPPED, lambda event: stopped.set())
    timer.on(EventType.TASK_COMPLETED, on_task_completed)
    timer.on(EventType.COMPLETED, on_completed)
    timer.on(EventType.TICK, on_tick)

    click.echo(f"Running {timer.task_count} tasks every {timer.interval}ms (Ctrl-C to stop)")
    timer.start()
    try:
        while not stopped.wait(0.2):
            pass
    except KeyboardInterrupt:
        click.echo("Interrupted")
    finally:
        timer.close()

    elapsed = timer.time.elapsed
    click.echo(
        f"Stopped after {timer.tick_count} ticks, {timer.run_count} runs, "
        f"{duration_to_human(elapsed)}"
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def validate(file: str) -> None:
    """Check the timer definition in FILE and list its tasks."""
    try:
        options, tasks = load_definition(file, defaults=TimerOptions.from_settings(settings))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"interval={options.interval}ms stop_on_completed={options.stop_on_completed}")
    for i, task in enumerate(tasks, 1):
        limit = task.total_runs or "unbounded"
        state = "enabled" if task.enabled else "disabled"
        click.echo(
            f"{i}. {task.name or '(auto)'}: every {task.tick_interval} ticks, "
            f"runs={limit}, {state}"
        )


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
