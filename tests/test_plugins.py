from types import SimpleNamespace

import typer

from ledgerlens.db import get_connection, init_db
from ledgerlens.extractor import DATED_LINE_PATTERNS, extract_statement
from ledgerlens.models import StatementFormat
from ledgerlens.plugins import PluginHooks, apply_migrations, load_plugins
from ledgerlens.registry import FormatRegistry


def test_add_format():
    hooks = PluginHooks()
    hooks.add_format(StatementFormat(key="test", name="Test", signatures=[r"test bank"]))
    assert len(hooks.formats) == 1


def test_add_command():
    hooks = PluginHooks()
    parent = typer.Typer()

    def new_cmd():
        """A plugin command."""

    hooks.add_command(parent, new_cmd)
    assert len(hooks.commands) == 1


def test_add_migration():
    hooks = PluginHooks()

    def migrate(conn):
        conn.execute("CREATE TABLE IF NOT EXISTS test_table (id INTEGER PRIMARY KEY)")

    hooks.add_migration(migrate)
    assert len(hooks.migrations) == 1


def test_apply_migrations(tmp_path):
    conn = get_connection(tmp_path / "test.db")
    init_db(conn)

    hooks = PluginHooks()
    hooks.add_migration(
        lambda c: c.execute("CREATE TABLE IF NOT EXISTS plugin_test (id INTEGER PRIMARY KEY)")
    )
    apply_migrations(conn, hooks)

    tables = [r[0] for r in conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()]
    assert "plugin_test" in tables
    conn.close()


def _fake_plugin():
    def register(hooks, app):
        hooks.add_format(StatementFormat(
            key="ally", name="Ally Bank",
            signatures=[r"ally bank"],
            patterns=DATED_LINE_PATTERNS,
        ))

        def hello():
            """Say hello."""

        hooks.add_command(app, hello)

    return SimpleNamespace(register=register)


def test_load_plugins_registers_formats(monkeypatch):
    entry_point = SimpleNamespace(load=_fake_plugin)

    def entry_points(group):
        assert group == "ledgerlens.plugins"
        return [entry_point]

    monkeypatch.setattr("importlib.metadata.entry_points", entry_points)
    formats = FormatRegistry()
    app = typer.Typer()
    hooks = load_plugins(app, formats)

    assert len(hooks.formats) == 1
    assert formats.get_by_key("ally").name == "Ally Bank"
    assert len(app.registered_commands) == 1

    result = extract_statement("ALLY BANK\n03/02/2024 TRANSFER IN 100.00 600.00", formats=formats)
    assert result.bank_info.identity == "ally"
    assert len(result.transactions) == 1


def test_load_plugins_without_plugins(monkeypatch):
    monkeypatch.setattr("importlib.metadata.entry_points", lambda group: [])
    hooks = load_plugins(typer.Typer(), FormatRegistry())
    assert hooks.formats == []
    assert hooks.commands == []
    assert hooks.migrations == []
