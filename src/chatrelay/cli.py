"""CLI entry point for chatrelay."""

import logging
from pathlib import Path

import click
import uvicorn

from .config import DEFAULT_VOICE, get_api_url
from .context import ChatContext
from .controller import ConversationController
from .core import SendOutcome
from .errors import GatewayError, ImportFormatError, ValidationError
from .gateway import HttpCompletionGateway, HttpImageGateway, HttpSpeechGateway
from .repository import ConversationRepository
from .transfer import conversation_to_json, conversation_to_markdown


def _session(ctx: click.Context) -> tuple[ChatContext, ConversationRepository, ConversationController]:
    """Open the store and wire a controller to the configured gateways."""
    context = ChatContext.open(ctx.obj["store"])
    repository = ConversationRepository(context)
    api_url = ctx.obj["api_url"]
    controller = ConversationController(
        context,
        repository,
        HttpCompletionGateway(base_url=api_url),
        speech=HttpSpeechGateway(base_url=api_url),
    )
    for warning in context.settings.warnings + repository.drain_warnings():
        click.secho(f"warning: {warning}", fg="yellow", err=True)
    return context, repository, controller


def _render(outcome: SendOutcome) -> None:
    for warning in outcome.warnings:
        click.secho(f"warning: {warning}", fg="yellow", err=True)
    if outcome.ok:
        click.echo(outcome.content)
    elif outcome.status == "failed":
        click.secho(f"Error: {outcome.error}", fg="red", err=True)


@click.group()
@click.option("--store", default=None, help="Store URL (memory:, file:<dir>, sqlite:<path>).")
@click.option("--api-url", default=None, help="Base URL of the proxy handlers.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, store: str | None, api_url: str | None, verbose: bool):
    """Chat with an AI completion service and keep the history locally."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["store"] = store
    ctx.obj["api_url"] = api_url or get_api_url()


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the proxy handlers."""
    click.echo(f"Starting chatrelay on http://{host}:{port}")
    uvicorn.run("chatrelay.server:app", host=host, port=port, reload=False)


@main.command()
@click.option("-c", "--conversation", "conversation_id", default=None, help="Conversation to continue.")
@click.argument("message")
@click.pass_context
def send(ctx: click.Context, conversation_id: str | None, message: str):
    """Send one message and print the reply."""
    _, _, controller = _session(ctx)
    conversation_id = conversation_id or controller.new_conversation_id()
    outcome = controller.send_user_message(conversation_id, message)
    if outcome.status == "rejected":
        raise click.UsageError(outcome.error)
    _render(outcome)
    click.secho(f"[{conversation_id}]", dim=True, err=True)
    if not outcome.ok:
        ctx.exit(1)


@main.command()
@click.option("-c", "--conversation", "conversation_id", default=None, help="Conversation to continue.")
@click.pass_context
def chat(ctx: click.Context, conversation_id: str | None):
    """Interactive chat. Type /new for a fresh conversation, /quit to leave."""
    _, repository, controller = _session(ctx)
    conversation_id = conversation_id or controller.new_conversation_id()
    existing = repository.get(conversation_id)
    click.secho(existing.title if existing else "New Chat", bold=True)

    while True:
        try:
            text = click.prompt("You", prompt_suffix="> ", default="", show_default=False)
        except click.Abort:
            break
        command = text.strip()
        if command in ("/quit", "/exit"):
            break
        if command == "/new":
            conversation_id = controller.new_conversation_id()
            click.secho("New Chat", bold=True)
            continue
        _render(controller.send_user_message(conversation_id, text))


@main.command()
@click.pass_context
def history(ctx: click.Context):
    """List conversations, most recent first."""
    _, repository, _ = _session(ctx)
    entries = repository.list()
    if not entries:
        click.echo("No conversations yet.")
        return
    for entry in entries:
        stamp = entry.last_update.strftime("%Y-%m-%d %H:%M")
        click.echo(f"{entry.id}  {stamp}  {entry.turn_count:>3}  {entry.title}")


@main.command()
@click.argument("conversation_id")
@click.pass_context
def show(ctx: click.Context, conversation_id: str):
    """Print every turn of a conversation."""
    _, repository, _ = _session(ctx)
    conversation = repository.get(conversation_id)
    if conversation is None:
        raise click.ClickException(f"Conversation not found: {conversation_id}")
    click.secho(conversation.title, bold=True)
    for turn in conversation.turns:
        click.secho(f"{turn.role.value}:", fg="cyan")
        click.echo(turn.content)


@main.command("export")
@click.argument("conversation_id")
@click.option("--format", "fmt", type=click.Choice(["json", "md"]), default="json", help="Export format.")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
def export_cmd(ctx: click.Context, conversation_id: str, fmt: str, output: Path | None):
    """Export a conversation as JSON or Markdown."""
    context, repository, _ = _session(ctx)
    conversation = repository.get(conversation_id)
    if conversation is None or not conversation.turns:
        raise click.ClickException("No chat to export")

    if fmt == "json":
        content = conversation_to_json(conversation, model=context.settings.current.model)
    else:
        content = conversation_to_markdown(conversation)

    if output:
        output.write_text(content, encoding="utf-8")
        click.echo(f"Exported to {output}")
    else:
        click.echo(content)


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_cmd(ctx: click.Context, path: Path):
    """Import a conversation exported as JSON."""
    _, repository, _ = _session(ctx)
    try:
        conversation = repository.import_conversation(path.read_bytes())
    except ImportFormatError as e:
        raise click.ClickException(f"Error importing chat: {e}")
    for warning in repository.drain_warnings():
        click.secho(f"warning: {warning}", fg="yellow", err=True)
    click.echo(f"Imported {conversation.id}: {conversation.title}")


@main.command()
@click.option("--model", default=None)
@click.option("--temperature", type=float, default=None)
@click.option("--max-tokens", type=int, default=None)
@click.option("--instructions", default=None, help="System instructions sent before every conversation.")
@click.option("--theme", type=click.Choice(["light", "dark"]), default=None)
@click.pass_context
def settings(ctx: click.Context, model, temperature, max_tokens, instructions, theme):
    """Show settings, or change them with options."""
    context, _, _ = _session(ctx)
    changes = {
        key: value
        for key, value in {
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "system_instructions": instructions,
            "theme": theme,
        }.items()
        if value is not None
    }
    if changes:
        try:
            warnings = context.settings.update(**changes)
        except ValidationError as e:
            raise click.BadParameter(str(e))
        for warning in warnings:
            click.secho(f"warning: {warning}", fg="yellow", err=True)

    for key, value in context.settings.current.to_dict().items():
        click.echo(f"{key}: {value}")


@main.command()
@click.argument("conversation_id")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True)
@click.option("--voice", default=DEFAULT_VOICE, help="Voice name.")
@click.pass_context
def speak(ctx: click.Context, conversation_id: str, output: Path, voice: str):
    """Save the last reply of a conversation as MP3."""
    _, _, controller = _session(ctx)
    outcome = controller.speak_last_reply(conversation_id, voice=voice)
    if not outcome.ok:
        raise click.ClickException(outcome.error)
    output.write_bytes(outcome.audio)
    click.echo(f"Saved {len(outcome.audio)} bytes to {output}")


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Check whether the completion gateway is reachable."""
    _, _, controller = _session(ctx)
    if controller.check_status():
        click.secho("Online", fg="green")
    else:
        click.secho("Offline", fg="red")
        ctx.exit(1)


@main.command()
@click.argument("prompt")
@click.option("--size", default="1024x1024", help="Image size, e.g. 512x512.")
@click.option("-n", "count", default=1, help="Number of images.")
@click.pass_context
def image(ctx: click.Context, prompt: str, size: str, count: int):
    """Generate images from a prompt and print their URLs."""
    if not prompt.strip():
        raise click.UsageError("Please enter a prompt")
    gateway = HttpImageGateway(base_url=ctx.obj["api_url"])
    try:
        urls = gateway.generate(prompt, size=size, n=count)
    except GatewayError as e:
        raise click.ClickException(e.message)
    for url in urls:
        click.echo(url)
