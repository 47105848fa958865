import functools

from rich.console import Console


@functools.lru_cache()
def init_client():
    console = Console()
    with console.status("Initializing client"):
        import os

        import buildfunctions

        api_token = os.environ.get("BUILDFUNCTIONS_API_TOKEN", None)
        if api_token:
            client = buildfunctions.BuildfunctionsClient(api_token=api_token)
        else:
            raise RuntimeError("Set BUILDFUNCTIONS_API_TOKEN")
        return client
