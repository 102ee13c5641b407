"""Interactive prompts: destination selection, backup directory, confirmation."""

from typing import Optional

from rich.prompt import Confirm, Prompt
from rich.table import Table

from .. import __logger__, __util__
from ..config.schema import SnapperConfig
from ..core.context import ConfigPlan, RunContext
from ..volume import Volume


def select_volume(volumes: list[Volume]) -> Optional[Volume]:
    """Let the operator pick a destination; None means exit."""
    cons = __logger__.cons
    if not volumes:
        cons.print("[bold red]No mounted btrfs filesystems found.[/]")
        return None

    table = Table(title="Available backup destinations")
    table.add_column("#", justify="right")
    table.add_column("Mount point")
    table.add_column("UUID")
    for i, volume in enumerate(volumes, 1):
        table.add_row(str(i), volume.mount_path, volume.uuid)
    cons.print(table)
    cons.print("  0. Exit")

    choices = [str(i) for i in range(len(volumes) + 1)]
    try:
        choice = Prompt.ask("Select a destination", choices=choices, console=cons)
    except (EOFError, KeyboardInterrupt):
        cons.print("\nCancelled")
        return None
    if choice == "0":
        return None
    return volumes[int(choice) - 1]


def prompt_backupdir(config: SnapperConfig, ctx: RunContext) -> Optional[str]:
    """Ask where on the destination the first backup of ``config`` goes."""
    cons = __logger__.cons
    cons.print(
        f"No backup of [bold]{config.name}[/] found on {ctx.volume.mount_path}. "
        f"Backups will be stored in {ctx.volume.mount_path}/<directory>/{config.name}."
    )
    try:
        return Prompt.ask("Backup directory", console=cons)
    except EOFError:
        return None


def confirm_run(ctx: RunContext, plan: ConfigPlan) -> bool:
    """Show what is about to happen to ``plan`` and ask whether to go ahead."""
    cons = __logger__.cons
    table = Table(title=f"Backup of {plan.name} to {ctx.volume.mount_path} ({ctx.volume.uuid})")
    table.add_column("Snapshot", justify="right")
    table.add_column("Mode")
    table.add_column("Destination")
    table.add_column("Afterwards")
    if plan.previous is None:
        mode, afterwards = "full", "-"
    else:
        mode = f"incremental from {plan.previous.number}"
        action = "untag" if ctx.keep_old else "delete"
        afterwards = f"{action} {plan.previous.number}"
    table.add_row(str(plan.new_number), mode, str(plan.destination), afterwards)
    cons.print(table)
    try:
        return Confirm.ask(f"Back up '{plan.name}'?", default=True, console=cons)
    except EOFError as e:
        raise __util__.AbortError(
            f"No answer to the confirmation prompt for '{plan.name}'"
        ) from e
