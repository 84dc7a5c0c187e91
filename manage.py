import click
from flask.cli import with_appcontext

from classes.progress_manager import ProgressManager


@click.command("reconcile-progress")
@click.option("--course-id", type=int, default=None, help="Only reconcile enrollments of this course.")
@with_appcontext
def reconcile_progress_command(course_id):
    """Recompute every cached enrollment progress from its lesson completions."""
    checked, updated = ProgressManager.reconcile_all(course_id)
    click.echo(f"Checked {checked} enrollment(s), updated {updated}.")


def register_commands(app):
    app.cli.add_command(reconcile_progress_command)
