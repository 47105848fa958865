import click
from rich.console import Console
from rich.table import Column, Table

from buildfunctions.file_walker import get_files_in_directory


@click.command("files")
@click.argument(
    "path", type=click.Path(exists=True, file_okay=False, dir_okay=True)
)
@click.option(
    "-m", "--machine-readable", is_flag=True, help="Removes pretty printing"
)
def files(path, machine_readable):
    """List the files of a model directory as they would be uploaded"""
    console = Console()
    found = get_files_in_directory(path)
    if machine_readable:
        table_params = {"box": None, "pad_edge": False}
    else:
        table_params = {
            "title": f":file_folder: {len(found)} files, {sum(f.size for f in found)} bytes",
            "title_justify": "left",
        }
    table = Table(
        Column("path", overflow="fold"), "size", "local path", **table_params
    )
    for descriptor in sorted(found, key=lambda f: f.relative_path):
        table.add_row(
            descriptor.relative_path,
            str(descriptor.size),
            descriptor.local_path,
        )
    console.print(table)
