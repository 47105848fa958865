import os

import click
from rich.console import Console

from buildfunctions import NetworkError
from buildfunctions.async_utils import run_sync
from buildfunctions.constants import PROBE_DELAY_SEC, PROBE_MAX_ATTEMPTS
from buildfunctions.readiness import EndpointReadinessProber
from cli.client import init_client


@click.group("sandboxes")
def sandboxes():
    """Sandboxes are hardware-isolated execution environments on CPU or GPU"""


def make_prober(attempts: int, delay: float) -> EndpointReadinessProber:
    return init_client().make_prober(max_attempts=attempts, delay_sec=delay)


@sandboxes.command("wait")
@click.argument("endpoint")
@click.option(
    "--attempts", default=PROBE_MAX_ATTEMPTS, show_default=True, type=int
)
@click.option(
    "--delay",
    default=PROBE_DELAY_SEC,
    show_default=True,
    type=float,
    help="Seconds between attempts",
)
def wait(endpoint, attempts, delay):
    """Wait until a freshly created sandbox endpoint answers"""
    console = Console()
    prober = make_prober(attempts, delay)
    with console.status(f"Waiting for {endpoint}", spinner="dots4"):
        try:
            state = run_sync(prober.wait_until_ready(endpoint))
        except NetworkError as e:
            console.print(f":rotating_light: {e.message}")
            raise click.exceptions.Exit(1)
    console.print(
        f":white_check_mark: {endpoint} ready after {state.attempt_count} attempt(s)"
    )


@sandboxes.command("create")
@click.option("--name", prompt=True)
@click.option("--language", default="python", show_default=True)
@click.option("--runtime", default=None)
@click.option(
    "--code-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Handler source file",
)
@click.option("--memory", default=None, help='e.g. "2GB" or "1024MB"')
@click.option("--timeout", default=None, type=int)
@click.option("--gpu", is_flag=True, help="Create a GPU sandbox")
@click.option(
    "--model-path",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Local model directory to upload (GPU only)",
)
def create(name, language, runtime, code_file, memory, timeout, gpu, model_path):
    """Create a CPU or GPU sandbox"""
    console = Console()
    code = None
    if code_file:
        with open(code_file, "r", encoding="utf-8") as f:
            code = f.read()
    client = init_client()
    kwargs = dict(
        runtime=runtime, code=code, memory=memory, timeout=timeout
    )
    with console.status(f"Creating {name}", spinner="dots4"):
        if gpu:
            if model_path:
                model_path = os.path.abspath(model_path)
            sandbox = client.create_gpu_sandbox(
                name, language, model_path=model_path, **kwargs
            )
        else:
            if model_path:
                raise click.UsageError("--model-path requires --gpu")
            sandbox = client.create_cpu_sandbox(name, language, **kwargs)
    console.print(f":rocket: {sandbox.id} -> {sandbox.endpoint}")
