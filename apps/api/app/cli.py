"""CLI tools for form builder administration."""

import logging
import os
import uuid

import click

from app.core.config import settings
from app.db.session import SessionLocal, init_db as create_tables
from app.services import form_service, submission_export_service
from app.services.errors import FormNotFoundError


@click.group()
def cli():
    """Form builder CLI tools."""
    logging.basicConfig(level=settings.LOG_LEVEL.upper())


@cli.command("init-db")
def init_db():
    """Create database tables that do not exist yet."""
    create_tables()
    click.echo("✓ Database tables ready")


@cli.command("serve")
@click.option("--host", default=lambda: os.getenv("HOST", "127.0.0.1"), help="Bind address (default: $HOST or 127.0.0.1)")
@click.option("--port", type=int, default=lambda: int(os.getenv("PORT", "8000")), help="Port (default: $PORT or 8000)")
def serve(host: str, port: int):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=port)


@cli.command("export-submissions")
@click.argument("form_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write CSV here instead of stdout")
def export_submissions(form_id: str, output: str | None):
    """
    Export every submission of a form as CSV.

    Example:
        python -m app.cli export-submissions 3f2b... --output answers.csv
    """
    try:
        parsed_id = uuid.UUID(form_id)
    except ValueError as exc:
        raise click.BadParameter("FORM_ID must be a UUID", param_hint="FORM_ID") from exc

    db = SessionLocal()
    try:
        try:
            form = form_service.get_form_or_raise(db, parsed_id)
        except FormNotFoundError as exc:
            raise click.ClickException(f"Form not found: {form_id}") from exc
        content = submission_export_service.build_submissions_csv(db, form)
    finally:
        db.close()

    if output:
        with open(output, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        click.echo(f"✓ Wrote {output}")
    else:
        click.echo(content, nl=False)


@cli.command("prune-rules")
def prune_rules():
    """
    Drop branching rules and section links that no longer resolve.

    Useful after editing stored definitions outside the API.
    """
    db = SessionLocal()
    try:
        changed = form_service.prune_stored_forms(db)
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()

    if changed:
        click.echo(f"✓ Cleaned {changed} form(s)")
    else:
        click.echo("✓ All forms already clean")


if __name__ == "__main__":
    cli()
