# ABOUTME: Shared Click options and arguments for bibrecon CLI commands.
# ABOUTME: Provides reusable decorators for record files and JSON output.

from pathlib import Path

import click

records_argument = click.argument(
    "records_path",
    metavar="RECORDS.json",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)

json_option = click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the result as JSON instead of a table.",
)
