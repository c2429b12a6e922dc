"""CLI entrypoint for cortex."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import load_config
from .models import NODE_TYPES, PRIORITIES
from .todos import SORT_MODES, TODO_FILTERS


@click.group()
@click.version_option(__version__, prog_name="cortex")
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Data directory (defaults to $CORTEX_HOME or ~/.cortex)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, verbose: bool) -> None:
    """cortex - Personal knowledge and task tree.

    Folders, notes, todos and focus sessions in one nested tree, linked
    with [[wiki links]].
    """
    ctx.ensure_object(dict)
    try:
        config = load_config(data_dir)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level_number,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj["config"] = config


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the data directory with a default cortex.toml."""
    from .commands.history_cmd import run_init

    sys.exit(run_init(ctx.obj["config"]))


@cli.command()
@click.option("--root", "root", default=None, metavar="NODE", help="Only show this subtree")
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Maximum depth to show")
@click.pass_context
def tree(ctx: click.Context, root: str | None, depth: int | None) -> None:
    """Show the node tree."""
    from .commands.nodes_cmd import run_tree

    sys.exit(run_tree(ctx.obj["config"], root=root, depth=depth))


@cli.command()
@click.argument("node")
@click.option("--json", "output_json", is_flag=True, help="Output the node record as JSON")
@click.pass_context
def show(ctx: click.Context, node: str, output_json: bool) -> None:
    """Show a node with its links, backlinks and attachments.

    NODE is an id, a unique id prefix, or a title.
    """
    from .commands.nodes_cmd import run_show

    sys.exit(run_show(ctx.obj["config"], node, output_json=output_json))


def _node_field_options(f):
    f = click.option("--due", default=None, metavar="YYYY-MM-DD", help="Due date (todos; empty to clear)")(f)
    f = click.option("--priority", type=click.Choice(PRIORITIES), default=None, help="Priority (todos)")(f)
    f = click.option("--tag", "tags", multiple=True, help="Tag (repeatable; replaces existing tags)")(f)
    f = click.option("--content", default=None, help="Markdown content")(f)
    return f


@cli.command()
@click.argument("node_type", type=click.Choice(NODE_TYPES))
@click.argument("title")
@click.option("--parent", default=None, metavar="NODE", help="Parent node (defaults to the root)")
@_node_field_options
@click.pass_context
def add(
    ctx: click.Context,
    node_type: str,
    title: str,
    parent: str | None,
    content: str | None,
    tags: tuple[str, ...],
    priority: str | None,
    due: str | None,
) -> None:
    """Create a folder, note, todo or session node."""
    from .commands.nodes_cmd import run_add

    sys.exit(
        run_add(
            ctx.obj["config"],
            node_type,
            title,
            parent=parent,
            content=content,
            tags=tags,
            priority=priority,
            due=due,
        )
    )


@cli.command()
@click.argument("node")
@click.option("--title", default=None, help="New title")
@_node_field_options
@click.pass_context
def edit(
    ctx: click.Context,
    node: str,
    title: str | None,
    content: str | None,
    tags: tuple[str, ...],
    priority: str | None,
    due: str | None,
) -> None:
    """Change fields of a node."""
    from .commands.nodes_cmd import run_edit

    sys.exit(
        run_edit(
            ctx.obj["config"],
            node,
            title=title,
            content=content,
            tags=tags,
            priority=priority,
            due=due,
        )
    )


@cli.command()
@click.argument("node")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rm(ctx: click.Context, node: str, yes: bool) -> None:
    """Delete a node and everything below it."""
    from .commands.nodes_cmd import run_rm

    if not yes:
        click.confirm(f"Delete {node!r} and all of its children?", abort=True)
    sys.exit(run_rm(ctx.obj["config"], node))


@cli.command()
@click.argument("node")
@click.argument("parent", required=False)
@click.pass_context
def mv(ctx: click.Context, node: str, parent: str | None) -> None:
    """Move NODE under PARENT (or to the root when PARENT is omitted)."""
    from .commands.nodes_cmd import run_mv

    sys.exit(run_mv(ctx.obj["config"], node, parent))


@cli.command()
@click.argument("node")
@click.pass_context
def dup(ctx: click.Context, node: str) -> None:
    """Duplicate a node and its subtree next to the original."""
    from .commands.nodes_cmd import run_dup

    sys.exit(run_dup(ctx.obj["config"], node))


@cli.command()
@click.argument("node")
@click.option("--undo", is_flag=True, help="Reopen the todo")
@click.pass_context
def done(ctx: click.Context, node: str, undo: bool) -> None:
    """Mark a todo as completed."""
    from .commands.nodes_cmd import run_done

    sys.exit(run_done(ctx.obj["config"], node, undo=undo))


@cli.command()
@click.argument("node")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--alt", default=None, help="Alt text (defaults to the file name)")
@click.pass_context
def attach(ctx: click.Context, node: str, file: Path, alt: str | None) -> None:
    """Store FILE and embed it at the end of NODE's content."""
    from .commands.nodes_cmd import run_attach

    sys.exit(run_attach(ctx.obj["config"], node, file, alt=alt))


@cli.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str) -> None:
    """Find nodes whose title or content contains QUERY."""
    from .commands.query_cmd import run_search

    sys.exit(run_search(ctx.obj["config"], query))


@cli.command()
@click.argument("node")
@click.pass_context
def backlinks(ctx: click.Context, node: str) -> None:
    """List nodes linking to NODE with [[its title]]."""
    from .commands.query_cmd import run_backlinks

    sys.exit(run_backlinks(ctx.obj["config"], node))


@cli.command()
@click.option("--filter", "todo_filter", type=click.Choice(TODO_FILTERS), default="all", help="Which todos to list")
@click.option("--sort", "sort_by", type=click.Choice(SORT_MODES), default="priority", help="Sort order")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def todos(ctx: click.Context, todo_filter: str, sort_by: str, output_json: bool) -> None:
    """List todos."""
    from .commands.query_cmd import run_todos

    sys.exit(run_todos(ctx.obj["config"], todo_filter=todo_filter, sort_by=sort_by, output_json=output_json))


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show note/todo counts and recent focus time."""
    from .commands.query_cmd import run_stats

    sys.exit(run_stats(ctx.obj["config"]))


@cli.command()
@click.argument("node")
@click.option(
    "--out",
    "-o",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Directory to write <title>.md into (default: print to stdout)",
)
@click.pass_context
def export(ctx: click.Context, node: str, out: Path | None) -> None:
    """Export a node as Markdown with YAML front matter."""
    from .commands.export_cmd import run_export

    sys.exit(run_export(ctx.obj["config"], node, out=out))


@cli.command()
@click.pass_context
def journal(ctx: click.Context) -> None:
    """Open (or create) today's journal note."""
    from .commands.capture_cmd import run_journal

    sys.exit(run_journal(ctx.obj["config"]))


@cli.command("quick-add")
@click.argument("title")
@click.option("--today", "due_today", is_flag=True, help="Due today")
@click.pass_context
def quick_add(ctx: click.Context, title: str, due_today: bool) -> None:
    """Add a todo to the inbox."""
    from .commands.capture_cmd import run_quick_add

    sys.exit(run_quick_add(ctx.obj["config"], title, due_today=due_today))


@cli.group()
def session() -> None:
    """Focus session timer."""
    pass


@session.command("start")
@click.option("--link", default=None, metavar="NODE", help="Node to record the session under")
@click.pass_context
def session_start(ctx: click.Context, link: str | None) -> None:
    """Start or resume the timer."""
    from .commands.session_cmd import run_session_start

    sys.exit(run_session_start(ctx.obj["config"], link=link))


@session.command("pause")
@click.pass_context
def session_pause(ctx: click.Context) -> None:
    """Pause the timer."""
    from .commands.session_cmd import run_session_pause

    sys.exit(run_session_pause(ctx.obj["config"]))


@session.command("status")
@click.pass_context
def session_status(ctx: click.Context) -> None:
    """Show elapsed focus time."""
    from .commands.session_cmd import run_session_status

    sys.exit(run_session_status(ctx.obj["config"]))


@session.command("stop")
@click.pass_context
def session_stop(ctx: click.Context) -> None:
    """Stop the timer and record a session node."""
    from .commands.session_cmd import run_session_stop

    sys.exit(run_session_stop(ctx.obj["config"]))


@cli.command()
@click.option("--last", "-n", type=click.IntRange(min=1), default=20, help="Number of entries")
@click.option("--diagnostics", is_flag=True, help="Show tolerated failures instead of operations")
@click.pass_context
def history(ctx: click.Context, last: int, diagnostics: bool) -> None:
    """Show recent structural changes."""
    from .commands.history_cmd import run_history

    sys.exit(run_history(ctx.obj["config"], last=last, diagnostics=diagnostics))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
