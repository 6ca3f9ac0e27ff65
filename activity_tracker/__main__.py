from activity_tracker.cli import cli

cli()
