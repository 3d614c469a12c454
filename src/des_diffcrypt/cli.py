import random
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import click
import requests
from rich.console import Console
from rich.table import Table

from des_diffcrypt.analysis.recovery import RecoveryResult
from des_diffcrypt.cipher.engine import decrypt as des_decrypt, encrypt as des_encrypt
from des_diffcrypt.cipher.key_schedule import MAX_ROUNDS, generate_key
from des_diffcrypt.cipher.sbox import SBOX_COUNT, difference_distribution, sbox_preimages
from des_diffcrypt.config import DEFAULT_PAIR_COUNT, DEMO_API_URL, ENV_PREFIX
from des_diffcrypt.interchange import (
    PairFormatError,
    format_key,
    generate_pair_text,
    parse_key,
    parse_pair_lines,
    parse_pair_text,
    to_signed64,
)
from des_diffcrypt.log_config import configure_logging
from des_diffcrypt.models.pair import PairSet
from des_diffcrypt.solver import solve_pairs
from des_diffcrypt.state_queue import SingleSlotQueue
from des_diffcrypt.state_snapshot import AttackSnapshot
from des_diffcrypt.ui import get_ui_log_handler, result_table, ui_loop


class KeyParamType(click.ParamType):
    """64-bit value given as decimal (signed or unsigned) or 0x-prefixed hex."""

    name = "key"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        try:
            return parse_key(value)
        except ValueError:
            self.fail(f"{value!r} is not a 64-bit decimal or 0x-hex value", param, ctx)


KEY = KeyParamType()


@click.group(context_settings={"auto_envvar_prefix": ENV_PREFIX})
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--log-json", is_flag=True, help="Emit log events as JSON.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_json: bool):
    ctx.obj = {"log_level": log_level, "log_json": log_json}
    configure_logging(log_level, json=log_json)


def solver(pairs_char1: PairSet, pairs_char2: PairSet, workers: int, show_ui: bool) -> RecoveryResult:
    """Run the attack on a worker thread while the main thread draws progress."""
    state_queue: SingleSlotQueue[AttackSnapshot] = SingleSlotQueue()

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(solve_pairs, pairs_char1, pairs_char2, state_queue, workers=workers)

        if show_ui:
            try:
                ui_loop(state_queue)
            except KeyboardInterrupt:
                state_queue.close()

        return future.result()


def use_ui_logging(ctx: click.Context) -> None:
    """Send log records to the live view's buffer instead of stderr."""
    obj = ctx.find_root().obj or {}
    configure_logging(obj.get("log_level", "WARNING"), json=obj.get("log_json", False), handler=get_ui_log_handler())


def print_result(result: RecoveryResult, console: Console) -> None:
    console.print(result_table(result))
    click.echo(format_key(result.key))


@cli.command()
@click.option("--seed", type=int, default=None, help="Seed for a reproducible key.")
def keygen(seed: Optional[int]):
    """Generate a random key with odd parity."""
    key = generate_key(random.Random(seed))
    click.echo(f"0x{key:016X} {to_signed64(key)}")


@cli.command()
@click.argument("block", type=KEY)
@click.option("--key", "-k", required=True, type=KEY)
@click.option("--rounds", "-r", default=MAX_ROUNDS, show_default=True, type=click.IntRange(1, MAX_ROUNDS))
@click.option("--standard/--core", default=True, show_default=True,
              help="Wrap the rounds in IP and IP^-1 (textbook DES) or run the bare Feistel core.")
def encrypt(block: int, key: int, rounds: int, standard: bool):
    """Encrypt one 64-bit block."""
    result = des_encrypt(block, key, rounds, standard=standard)
    click.echo(f"0x{result.ciphertext:016X}")


@cli.command()
@click.argument("block", type=KEY)
@click.option("--key", "-k", required=True, type=KEY)
@click.option("--rounds", "-r", default=MAX_ROUNDS, show_default=True, type=click.IntRange(1, MAX_ROUNDS))
@click.option("--standard/--core", default=True, show_default=True,
              help="Wrap the rounds in IP and IP^-1 (textbook DES) or run the bare Feistel core.")
def decrypt(block: int, key: int, rounds: int, standard: bool):
    """Decrypt one 64-bit block."""
    result = des_decrypt(block, key, rounds, standard=standard)
    click.echo(f"0x{result.ciphertext:016X}")


@cli.command()
@click.option("--key", "-k", type=KEY, default=None, help="Key to encrypt under; random when omitted.")
@click.option("--count", "-n", default=DEFAULT_PAIR_COUNT, show_default=True, type=click.IntRange(min=0),
              help="Plaintext pairs tried per characteristic.")
@click.option("--seed", type=int, default=None)
@click.option("--workers", "-w", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--output", "-o", type=click.File("w"), default="-", show_default=True)
def generate(key: Optional[int], count: int, seed: Optional[int], workers: int, output):
    """Write right pairs for both characteristics in the interchange format."""
    rng = random.Random(seed)
    if key is None:
        key = generate_key(rng)
        click.echo(f"key: 0x{key:016X} {to_signed64(key)}", err=True)
    output.write(generate_pair_text(key, count, rng=rng, workers=workers))
    output.write("\n")


@cli.command()
@click.argument("input_file", type=click.File("r"))
@click.option("--workers", "-w", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--ui/--no-ui", "show_ui", default=True, show_default=True, help="Show live progress.")
@click.pass_context
def analyze(ctx: click.Context, input_file, workers: int, show_ui: bool):
    """Recover the 6-round key from an interchange file."""
    try:
        pairs_char1, pairs_char2 = parse_pair_lines(input_file)
    except PairFormatError as e:
        raise click.ClickException(f"{input_file.name}: {e}") from e

    if show_ui:
        use_ui_logging(ctx)
    result = solver(pairs_char1, pairs_char2, workers, show_ui)
    print_result(result, Console())
    if not result.found:
        ctx.exit(1)


@cli.command()
@click.argument("sbox", type=click.IntRange(1, SBOX_COUNT))
@click.option("--output", "-o", "output", type=click.IntRange(0, 15), default=None,
              help="List the inputs that map to this output instead.")
def ddt(sbox: int, output: Optional[int]):
    """Print the difference distribution table of one S-box."""
    if output is not None:
        inputs = sbox_preimages(sbox, output)
        click.echo(f"S{sbox} output {output:x}: " + " ".join(f"{v:02x}" for v in inputs))
        return

    table = Table(title=f"S{sbox} difference distribution", show_edge=False, padding=(0, 1))
    table.add_column("in", justify="right", style="cyan")
    for column in range(16):
        table.add_column(f"{column:x}", justify="right")
    for input_xor, row in enumerate(difference_distribution(sbox)):
        table.add_row(f"{input_xor:02x}", *(str(count) if count else "." for count in row))
    Console().print(table)


def fetch_demo_pairs(endpoint: str, count: int, seed: Optional[int]) -> dict:
    """Fetch pair lines from the demo API."""
    params = {"count": count}
    if seed is not None:
        params["seed"] = seed
    response = requests.get(f"{endpoint}/api/pairs", params=params)
    if response.status_code != 200:
        raise ValueError(f"Failed to get {endpoint}/api/pairs: {response.status_code} {response.text}")
    return response.json()


def verify_demo_key(endpoint: str, key: int) -> bool:
    response = requests.post(f"{endpoint}/api/verify", json={"key": format_key(key)})
    if response.status_code != 200:
        raise ValueError(f"Failed to post {endpoint}/api/verify: {response.status_code} {response.text}")
    return response.json()["valid"]


@cli.command()
@click.option("--url", default=DEMO_API_URL, show_default=True, help="Base URL of the demo API.")
@click.option("--count", "-n", default=DEFAULT_PAIR_COUNT, show_default=True, type=click.IntRange(min=1))
@click.option("--seed", type=int, default=None)
@click.option("--workers", "-w", default=1, show_default=True, type=click.IntRange(min=1))
@click.option("--ui/--no-ui", "show_ui", default=True, show_default=True)
@click.pass_context
def demo(ctx: click.Context, url: str, count: int, seed: Optional[int], workers: int, show_ui: bool):
    """Attack the demo API's secret key and check the answer with it."""
    try:
        data = fetch_demo_pairs(url, count, seed)
        pairs_char1, pairs_char2 = parse_pair_text("\n".join(data["lines"]))
    except (requests.RequestException, ValueError) as e:
        raise click.ClickException(str(e)) from e

    if show_ui:
        use_ui_logging(ctx)
    result = solver(pairs_char1, pairs_char2, workers, show_ui)
    print_result(result, Console())
    if not result.found:
        ctx.exit(1)

    try:
        valid = verify_demo_key(url, result.key)
    except (requests.RequestException, ValueError) as e:
        raise click.ClickException(str(e)) from e
    click.echo("verified" if valid else "rejected")
    if not valid:
        ctx.exit(1)


@cli.command("demo-api")
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to bind the server to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def demo_api(host: str, port: int, reload: bool):
    """Start the demo API that holds a secret 6-round key."""
    try:
        import uvicorn
        from demo_api.api import app
    except ImportError as e:
        click.echo(f"Error: Demo API dependencies not available: {e}")
        click.echo("Install with: pip install 'des-diffcrypt[demo]'")
        raise click.Abort()

    click.echo(f"Starting demo API server on http://{host}:{port}")
    click.echo("Available endpoints:")
    click.echo("  - GET  /api/pairs   - Right pairs for both characteristics")
    click.echo("  - POST /api/verify  - Check a recovered key")
    click.echo("\nPress Ctrl+C to stop the server")

    if reload:
        uvicorn.run("demo_api.api:app", host=host, port=port, reload=True)
    else:
        uvicorn.run(app, host=host, port=port, reload=False)


if __name__ == "__main__":
    cli()
