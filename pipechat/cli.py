"""Main CLI entry point for pipechat."""

import asyncio
import logging
import os
import sys
from contextlib import aclosing
from typing import List, Optional, TextIO

import typer
from pydantic import ValidationError
from rich.console import Console
from typer.core import TyperCommand

from . import __app_name__, __version__
from .client import CompletionClient
from .config import get_config
from .errors import BrokenOutputPipeError, ConfigError, PipechatError
from .inputs import aggregate_conversation, interleave_flag_messages
from .log import print_error, setup_logging
from .models import Conversation, GenerationOptions, OutputFormat, ReasoningEffort
from .render import OutputRenderer

logger = logging.getLogger(__name__)

# Rich console for version output
console = Console()

FLAG_ORDER_KEY = "pipechat.flag_order"
ORDERED_FLAGS = ("system", "user", "assistant")


class OrderedFlagsCommand(TyperCommand):
    """Command that remembers the order message flags were given in.

    Click collects each repeatable option into its own tuple, which loses
    how ``-u`` and ``-a`` were interleaved. The parser reports every
    occurrence in order, so run it once up front and keep that order in
    ``ctx.meta``.
    """

    def parse_args(self, ctx: typer.Context, args: List[str]) -> List[str]:
        parser = self.make_parser(ctx)
        _, _, order = parser.parse_args(args=list(args))
        ctx.meta[FLAG_ORDER_KEY] = [param.name for param in order if param.name in ORDERED_FLAGS]
        return super().parse_args(ctx, args)


app = typer.Typer(
    name=__app_name__,
    help="Send a conversation to a chat-completion model and print the reply.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]{__app_name__}[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.command(cls=OrderedFlagsCommand)
def chat(
    ctx: typer.Context,
    file: Optional[str] = typer.Argument(
        None, metavar="FILE",
        help="Read the trailing user message from FILE ('-' for stdin). Defaults to piped stdin.",
    ),
    system: Optional[str] = typer.Option(
        None, "--system", "-s", help="System prompt. Always sent first."
    ),
    user: Optional[List[str]] = typer.Option(
        None, "--user", "-u", help="Append a user message. Repeatable."
    ),
    assistant: Optional[List[str]] = typer.Option(
        None, "--assistant", "-a", help="Append an assistant message. Repeatable."
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Model to use (default from PIPECHAT_MODEL or gpt-4o-mini)."
    ),
    temperature: Optional[float] = typer.Option(
        None, "--temperature", "-t", min=0.0, max=2.0, help="Sampling temperature."
    ),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", min=1, help="Upper bound on generated tokens."
    ),
    reasoning_effort: Optional[ReasoningEffort] = typer.Option(
        None, "--reasoning-effort", case_sensitive=False, help="Reasoning effort for reasoning models."
    ),
    output_format: Optional[OutputFormat] = typer.Option(
        None, "--output-format", "-o", case_sensitive=False, help="Output encoding (default: text)."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Shorthand for --output-format json."
    ),
    jsonp_output: bool = typer.Option(
        False, "--jsonp", help="Shorthand for --output-format json-pretty."
    ),
    stream: Optional[bool] = typer.Option(
        None, "--stream/--no-stream",
        help="Stream the reply as it is generated (default: only for ndjson).",
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", min=1, help="Overall request timeout in seconds (default: 60)."
    ),
    api_key: Optional[str] = typer.Option(
        None, "--api-key", help="API key (default from PIPECHAT_API_KEY or OPENAI_API_KEY).",
        show_default=False,
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="API base URL (e.g., http://localhost:11434/v1)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Log debug diagnostics to stderr."
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True,
        help="Show version information.",
    ),
) -> None:
    """Send a conversation to a chat-completion model and print the reply.

    Messages are sent in this order: the --system prompt, then every --user
    and --assistant message in the order given, then the body from FILE or
    piped stdin as a final user message.
    """
    try:
        cfg = get_config()
    except ValidationError as e:
        setup_logging()
        print_error(f"invalid configuration - {e}")
        raise typer.Exit(ConfigError.exit_code)
    setup_logging("DEBUG" if verbose else cfg.log_level)

    flag_order = ctx.meta.get(FLAG_ORDER_KEY, [])
    if flag_order.count("system") > 1:
        raise typer.BadParameter("may only be given once", param_hint="'--system'")
    fmt = _resolve_output_format(output_format, json_output, jsonp_output)
    use_stream = _resolve_stream(fmt, stream)

    try:
        key = api_key or cfg.api_key
        if not key:
            raise ConfigError("no API key provided - pass --api-key or set OPENAI_API_KEY")

        turns = interleave_flag_messages(flag_order, user or (), assistant or ())
        conversation = aggregate_conversation(
            system=system, turns=turns, file_path=file, stdin=sys.stdin
        )
        options = GenerationOptions(
            model=model or cfg.model,
            api_key=key,
            output_format=fmt,
            timeout_seconds=float(timeout) if timeout is not None else cfg.timeout,
            temperature=temperature if temperature is not None else cfg.temperature,
            max_tokens=max_tokens if max_tokens is not None else cfg.max_tokens,
            reasoning_effort=reasoning_effort,
            stream=use_stream,
        )
        asyncio.run(_complete(conversation, options, base_url or cfg.base_url, sys.stdout))
    except BrokenOutputPipeError:
        logger.debug("Output pipe closed by consumer")
        _detach_stdout()
        raise typer.Exit(BrokenOutputPipeError.exit_code)
    except PipechatError as e:
        logger.debug("Invocation failed", exc_info=True)
        print_error(str(e))
        raise typer.Exit(e.exit_code)


async def _complete(
    conversation: Conversation, options: GenerationOptions, base_url: str, out: TextIO
) -> None:
    """Send the conversation and render the reply."""
    renderer = OutputRenderer(options.output_format, out)
    async with CompletionClient(options, base_url=base_url) as client:
        if options.stream:
            async with aclosing(client.stream(conversation)) as fragments:
                await renderer.render_stream(fragments)
        else:
            renderer.render_reply(await client.complete(conversation))


def _resolve_output_format(
    output_format: Optional[OutputFormat], json_output: bool, jsonp_output: bool
) -> OutputFormat:
    if json_output and jsonp_output:
        raise typer.BadParameter("--json and --jsonp are mutually exclusive", param_hint="'--jsonp'")
    shorthand = OutputFormat.JSON if json_output else OutputFormat.JSON_PRETTY if jsonp_output else None
    if shorthand is None:
        return output_format or OutputFormat.TEXT
    if output_format is not None and output_format is not shorthand:
        raise typer.BadParameter(
            f"conflicts with --output-format {output_format.value}",
            param_hint="'--json'" if json_output else "'--jsonp'",
        )
    return shorthand


def _resolve_stream(fmt: OutputFormat, stream: Optional[bool]) -> bool:
    if stream is None:
        return fmt is OutputFormat.NDJSON
    if not stream and fmt is OutputFormat.NDJSON:
        raise typer.BadParameter("ndjson output is always streamed", param_hint="'--no-stream'")
    return stream


def _detach_stdout() -> None:
    """Point stdout at devnull so the interpreter's final flush cannot fail."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError) as e:
        logger.debug("Could not detach stdout: %s", e)


def run() -> None:
    """Entry point for the CLI."""
    app()
