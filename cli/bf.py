import click
from rich.console import Console

from cli.client import init_client
from cli.files import files
from cli.sandboxes import sandboxes


@click.group("bf")
def bf():
    """Welcome to the Buildfunctions CLI!

    Serverless CPU and GPU sandboxes for AI agents: https://www.buildfunctions.com
    """


@bf.command("whoami")
def whoami():
    """Authenticate and show the current user"""
    console = Console()
    with console.status("Authenticating", spinner="dots4"):
        client = init_client()
        user = client.user
    console.print(
        f":key: {user.username or user.id} ({user.email or 'no email'}), tier: {user.compute_tier or '-'}"
    )


bf.add_command(files)  # type: ignore
bf.add_command(sandboxes)  # type: ignore

if __name__ == "__main__":
    bf()
