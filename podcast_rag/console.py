from rich.console import Console

# Diagnostics go to stderr so JSON written to stdout stays parseable
console = Console(stderr=True)
