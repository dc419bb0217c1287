import json
import os
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ledgerlens.categorizer import Classifier, categorize_transactions
from ledgerlens.db import SqliteRuleStore, category_exists, get_connection, init_db
from ledgerlens.errors import ExtractionFailed
from ledgerlens.extractor import extract_document
from ledgerlens.importer import import_statement
from ledgerlens.logging_setup import configure_logging
from ledgerlens.models import DIRECTIONS
from ledgerlens.plugins import apply_migrations, load_plugins
from ledgerlens.registry import registry
from ledgerlens.rule_cache import RuleCache
from ledgerlens.settings import DEFAULTS, get_data_dir, load_settings, save_settings
from ledgerlens.textsource import extractor_for

app = typer.Typer(help="ledgerlens: bank statement text to categorized transactions.", invoke_without_command=True)

_plugin_hooks = load_plugins(app)

console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """ledgerlens: bank statement text to categorized transactions."""
    configure_logging(log_level or os.getenv("LEDGERLENS_LOG_LEVEL") or load_settings()["log_level"])


def get_db_path() -> Path:
    return get_data_dir() / "ledgerlens.db"


def _user(user: str | None) -> str:
    return user or load_settings()["default_user"]


class _NoRules:
    """Rule source used before ``init``: classification falls back to built-in keywords."""

    def get_classification_rules(self, user_id: str) -> list:
        return []


def _build_classifier(store) -> Classifier:
    settings = load_settings()
    cache = RuleCache(store, ttl=float(settings["rule_cache_ttl"]))
    if isinstance(store, SqliteRuleStore):
        store.on_change = cache.clear
    return Classifier(cache, fetch_timeout=settings["rule_fetch_timeout"])


def _money(amount) -> str:
    color = "red" if amount < 0 else "green"
    return f"[{color}]${abs(amount):,.2f}[/{color}]"


@app.command()
def init(
    data_dir: str = typer.Option(None, "--data-dir", help="Path for ledgerlens data (default: ~/Documents/ledgerlens)"),
):
    """Choose a data directory and initialize the database."""
    settings = load_settings()

    if data_dir:
        settings["data_dir"] = str(Path(data_dir).expanduser().resolve())
    elif settings == DEFAULTS:
        default = settings["data_dir"]
        chosen = typer.prompt("Data directory", default=default)
        settings["data_dir"] = str(Path(chosen).expanduser().resolve())

    save_settings(settings)

    resolved = Path(settings["data_dir"])
    resolved.mkdir(parents=True, exist_ok=True)
    (resolved / "imports").mkdir(exist_ok=True)

    conn = get_connection(resolved / "ledgerlens.db")
    init_db(conn)
    apply_migrations(conn, _plugin_hooks)
    conn.close()

    typer.echo(f"Initialized ledgerlens at {resolved}")


# --- Extract ---


@app.command()
def extract(
    file: Path = typer.Argument(help="Statement file (.txt or .pdf)"),
    user: str = typer.Option(None, help="User whose rules classify the rows"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Extract and classify transactions from a statement without saving them."""
    try:
        result = extract_document(
            file.read_bytes(), extractor_for(file), metadata={"filename": file.name}
        )
    except ExtractionFailed as exc:
        console.print(f"[red]Could not read {file.name}: {escape(exc.message)}[/red]")
        raise typer.Exit(1)

    db_path = get_db_path()
    conn = get_connection(db_path) if db_path.exists() else None
    classifier = _build_classifier(SqliteRuleStore(conn) if conn else _NoRules())
    rows = classifier.classify_all(
        result.transactions, _user(user), concurrency=int(load_settings()["batch_concurrency"])
    )
    classifier.cache.close()
    if conn is not None:
        conn.close()

    if as_json:
        payload = result.to_dict()
        payload["transactions"] = [r.to_dict() for r in rows]
        typer.echo(json.dumps(payload, indent=2))
        return

    info = result.bank_info
    console.print(f"Bank: [bold]{info.name}[/bold] (confidence {info.confidence:.1f})")
    if result.statement_period:
        period = result.statement_period
        console.print(f"Statement period: {period.start.isoformat()} → {period.end.isoformat()}")

    table = Table(title=f"Transactions ({len(rows)})")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Payee")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    for r in rows:
        table.add_row(
            r.date.isoformat(), r.description, r.payee, _money(r.amount),
            r.category or "[yellow]needs review[/yellow]",
        )
    console.print(table)


# --- Import ---


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(help="Statement file (.txt or .pdf) to import"),
    user: str = typer.Option(None, help="User the transactions belong to"),
):
    """Import a statement, classify its transactions and store them."""
    conn = get_connection(get_db_path())
    classifier = _build_classifier(SqliteRuleStore(conn))
    try:
        result = import_statement(
            conn, file, _user(user), classifier,
            concurrency=int(load_settings()["batch_concurrency"]),
        )
    except ExtractionFailed as exc:
        console.print(f"[red]Could not read {file.name}: {escape(exc.message)}[/red]")
        raise typer.Exit(1)
    finally:
        classifier.cache.close()
        conn.close()

    if result["duplicate_file"]:
        typer.echo("This file has already been imported (duplicate checksum).")
        return

    typer.echo(f"Detected bank: {result['bank']}")
    typer.echo(
        f"{result['imported']} imported, {result['skipped']} skipped (duplicates), "
        f"{result['flagged']} need review"
    )

    dest = get_data_dir() / "imports" / file.name
    if not dest.exists():
        shutil.copy2(file, dest)


# --- Categorize ---


@app.command()
def categorize(user: str = typer.Option(None, help="User whose transactions to re-check")):
    """Re-run classification on uncategorized transactions."""
    conn = get_connection(get_db_path())
    classifier = _build_classifier(SqliteRuleStore(conn))
    result = categorize_transactions(conn, classifier, _user(user))
    classifier.cache.close()
    conn.close()
    typer.echo(f"{result['categorized']} categorized, {result['still_flagged']} still flagged")


@app.command()
def flagged(user: str = typer.Option(None, help="User whose transactions to list")):
    """Show transactions no rule could categorize."""
    conn = get_connection(get_db_path())
    rows = conn.execute(
        "SELECT id, date, description, amount FROM transactions "
        "WHERE user_id = ? AND is_flagged = 1 ORDER BY date",
        (_user(user),),
    ).fetchall()
    conn.close()

    if not rows:
        typer.echo("No flagged transactions.")
        return

    table = Table(title=f"Flagged Transactions ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    for r in rows:
        amount = float(r["amount"])
        table.add_row(str(r["id"]), r["date"], r["description"], _money(amount))
    console.print(table)


@app.command()
def formats():
    """List the statement layouts ledgerlens recognizes."""
    table = Table(title="Statement Formats")
    table.add_column("Key", style="dim")
    table.add_column("Bank")
    table.add_column("Patterns", justify="right")
    table.add_column("Version")
    for fmt in registry.list_all():
        table.add_row(fmt.key, fmt.name, str(len(fmt.patterns)), fmt.version)
    console.print(table)


# --- Rules ---

rules_app = typer.Typer(help="Manage classification rules.")
app.add_typer(rules_app, name="rules")


@rules_app.command("add")
def rules_add(
    keywords: list[str] = typer.Argument(help="Keywords; a transaction matches if it contains any"),
    category: str = typer.Option(help="Category name to assign"),
    direction: str = typer.Option("any", help="Amount direction: positive, negative or any"),
    priority: int = typer.Option(0, help="Rule priority (higher is checked first)"),
    user: str = typer.Option(None, help="User the rule belongs to"),
):
    """Add a classification rule."""
    if direction not in DIRECTIONS:
        typer.echo(f"Unknown direction: {direction}")
        raise typer.Exit(1)
    conn = get_connection(get_db_path())
    if not category_exists(conn, category):
        conn.close()
        typer.echo(f"Unknown category: {category}")
        raise typer.Exit(1)
    rule_id = SqliteRuleStore(conn).add_rule(
        _user(user), category, keywords, amount_direction=direction, priority=priority,
    )
    conn.close()
    typer.echo(f"Added rule {rule_id}: {', '.join(keywords)} → {category}")


@rules_app.command("list")
def rules_list(user: str = typer.Option(None, help="User whose rules to list")):
    """List classification rules in evaluation order."""
    conn = get_connection(get_db_path())
    rows = SqliteRuleStore(conn).list_rules(_user(user))
    conn.close()

    table = Table(title="Rules")
    table.add_column("ID", style="dim")
    table.add_column("Keywords")
    table.add_column("Category")
    table.add_column("Direction")
    table.add_column("Priority")
    table.add_column("Active")
    for row in rows:
        table.add_row(
            str(row["id"]), ", ".join(json.loads(row["keywords"])), row["category"],
            row["amount_direction"] or "any", str(row["priority"]),
            "yes" if row["is_active"] else "no",
        )
    console.print(table)


@rules_app.command("delete")
def rules_delete(
    rule_id: int = typer.Argument(help="Rule ID"),
    user: str = typer.Option(None, help="User the rule belongs to"),
):
    """Delete a classification rule."""
    conn = get_connection(get_db_path())
    deleted = SqliteRuleStore(conn).delete_rule(_user(user), rule_id)
    conn.close()
    if not deleted:
        typer.echo(f"No rule {rule_id}")
        raise typer.Exit(1)
    typer.echo(f"Deleted rule {rule_id}")


if __name__ == "__main__":
    app()
