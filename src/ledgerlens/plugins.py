import importlib.metadata
import sqlite3
from typing import Callable

import typer

from ledgerlens.models import StatementFormat
from ledgerlens.registry import FormatRegistry, registry

ENTRY_POINT_GROUP = "ledgerlens.plugins"


class PluginHooks:
    def __init__(self):
        self.formats: list[StatementFormat] = []
        self.commands: list[tuple[typer.Typer, Callable]] = []
        self.migrations: list[Callable[[sqlite3.Connection], None]] = []

    def add_format(self, fmt: StatementFormat) -> None:
        self.formats.append(fmt)

    def add_command(self, parent: typer.Typer, command: Callable) -> None:
        self.commands.append((parent, command))

    def add_migration(self, fn: Callable[[sqlite3.Connection], None]) -> None:
        self.migrations.append(fn)


def load_plugins(app: typer.Typer, formats: FormatRegistry = registry) -> PluginHooks:
    """Discover installed plugins and collect their hooks."""
    hooks = PluginHooks()

    for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
        plugin_module = ep.load()
        if hasattr(plugin_module, "register"):
            plugin_module.register(hooks, app=app)

    for fmt in hooks.formats:
        formats.register(fmt)

    for parent, command in hooks.commands:
        parent.command()(command)

    return hooks


def apply_migrations(conn: sqlite3.Connection, hooks: PluginHooks) -> None:
    for fn in hooks.migrations:
        fn(conn)
    conn.commit()
