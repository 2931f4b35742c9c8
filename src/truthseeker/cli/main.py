"""
Command Line Interface for TruthSeeker.

Runs forensic analyses against Gemini, keeps the local case record (analysis
history and journal) and exports evidence reports.
"""

import asyncio
import json
import sys
import webbrowser
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from truthseeker import __version__
from truthseeker.ai.client import ModelGateway
from truthseeker.ai.conversation import ConversationAnalysis
from truthseeker.ai.session import AnalysisSession
from truthseeker.ai.tasks import ASPECT_RATIOS, get_task
from truthseeker.config import (
    APIKeyError,
    APIKeyManager,
    AppConfig,
    ConfigFileError,
    KeySource,
    get_config,
    load_config,
)
from truthseeker.core.case_store import RED_FLAG_TEMPLATES, CaseStore
from truthseeker.core.media import encode_file
from truthseeker.core.models import AnalysisResult, CompletionState, MediaKind, RiskLevel, TaskKind
from truthseeker.evidence.aggregator import build_evidence_items, item_checksum
from truthseeker.output.report import ReportCompiler, format_long_date
from truthseeker.output.reverse_search import search_services
from truthseeker.output.watermark import apply_simulation_watermark
from truthseeker.utils.logging import setup_logging

console = Console()

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.CRITICAL: "bold red",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def print_header(text: str) -> None:
    """Print a styled header."""
    console.print()
    console.print(Panel(text, style="bold blue", expand=False))
    console.print()


def print_success(text: str) -> None:
    console.print(f"[bold green]✓[/bold green] {text}")


def print_warning(text: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {text}")


def print_error(text: str) -> None:
    console.print(f"[bold red]✗[/bold red] {text}")


def print_info_panel(title: str, content: str, border_style: str = "blue") -> None:
    console.print(Panel(content, title=title, border_style=border_style))


def confirm(prompt: str, default: bool = False) -> bool:
    return Confirm.ask(prompt, default=default, console=console)


def _risk_text(level: Optional[RiskLevel]) -> str:
    if level is None:
        return "[dim]n/a[/dim]"
    style = RISK_STYLES[level]
    return f"[{style}]{level.value}[/{style}]"


def _config(ctx: click.Context) -> AppConfig:
    return ctx.obj["config"]


def _gateway(ctx: click.Context) -> ModelGateway:
    if "gateway" not in ctx.obj:
        ctx.obj["gateway"] = ModelGateway(config=_config(ctx))
    return ctx.obj["gateway"]


def _load_store(ctx: click.Context) -> CaseStore:
    case_file = _config(ctx).paths.case_file
    try:
        return CaseStore.load(case_file)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)


def _encode(path: Path) -> Any:
    return asyncio.run(encode_file(path))


def _print_fragment(text: str) -> None:
    console.print(text, end="", markup=False, highlight=False, soft_wrap=True)


def run_analysis(
    ctx: click.Context,
    task: TaskKind,
    payload: dict[str, Any],
    source: str = "",
    media_kind: Optional[MediaKind] = None,
) -> AnalysisResult:
    """Run one task, printing streamed text as it arrives.

    Completed results with a media kind are recorded in case history. On
    failure the partial output stays on screen and the process exits with 1.
    """
    definition = get_task(task)
    on_fragment = _print_fragment if definition.streams else None
    session = AnalysisSession(task.value, _gateway(ctx), on_fragment=on_fragment)

    result = asyncio.run(session.run(task, payload, source=source))
    if definition.streams and result.text:
        console.print()

    if result.state == CompletionState.FAILED:
        print_error(f"Analysis failed: {result.error}")
        if result.text:
            print_warning("Partial output above was kept.")
        sys.exit(1)

    if definition.computes_risk:
        console.print(f"\nRisk level: {_risk_text(result.risk_level)}")

    if result.citations:
        table = Table(title="Sources")
        table.add_column("Title", style="cyan")
        table.add_column("URL")
        for citation in result.citations:
            table.add_row(citation.title, citation.url)
        console.print(table)

    if media_kind is not None:
        store = _load_store(ctx)
        item = store.history.record(result, media_kind, file_name=source)
        store.save()
        print_success(f"Saved to case history ({item.id})")

    return result


def print_conversation_analysis(analysis: ConversationAnalysis) -> None:
    style = RISK_STYLES[analysis.risk_level]
    print_info_panel(
        f"Risk {analysis.overall_risk_score}/100",
        f"[{style}]{analysis.risk_level.value}[/{style}]\n\n{analysis.summary}",
        border_style=style.split()[-1],
    )

    if analysis.patterns:
        table = Table(title="Detected Patterns")
        table.add_column("Type", style="cyan")
        table.add_column("Severity")
        table.add_column("Explanation")
        for pattern in analysis.patterns:
            table.add_row(pattern.type.value, pattern.severity.value, pattern.explanation)
        console.print(table)

    if analysis.timeline:
        console.print("\n[bold]Timeline[/bold]")
        for event in analysis.timeline:
            marker = "[red]●[/red]" if event.concern else "○"
            console.print(f"  {marker} {event.approximate}: {event.event}")

    if analysis.red_flags:
        console.print("\n[bold red]Red Flags[/bold red]")
        for flag in analysis.red_flags:
            console.print(f"  • {flag}")

    if analysis.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for recommendation in analysis.recommendations:
            console.print(f"  • {recommendation}")


# =============================================================================
# MAIN CLI GROUP
# =============================================================================


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Custom config file")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def truthseeker(ctx, verbose, debug, config_path, quiet):
    """
    TruthSeeker - Forensic assistant for catfishing, romance scams and deepfakes.

    Analyze photos, video, voice notes and chats with Gemini, keep a case
    journal, and export an evidence report for IC3, the FTC or police.
    """
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(config_path) if config_path else get_config()
        except ConfigFileError as e:
            print_error(str(e))
            sys.exit(1)
    ctx.obj["quiet"] = quiet

    cfg = ctx.obj["config"]
    debug = debug or cfg.debug
    if debug:
        level = "DEBUG"
    elif verbose or cfg.verbose:
        level = "INFO"
    else:
        level = "WARNING"
    # Debug sessions also keep a log file under the data directory
    log_file = cfg.paths.log_dir / "truthseeker.log" if debug else None
    setup_logging(level=level, log_file=log_file, quiet_third_party=not debug)


# =============================================================================
# ANALYZE GROUP
# =============================================================================


@truthseeker.group()
def analyze():
    """Run a forensic analysis."""


@analyze.command("image")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--guided", is_flag=True, help="Mentor mode: learn to spot signs yourself (no verdict)")
@click.pass_context
def analyze_image(ctx, path, guided):
    """
    Check a photo for AI generation or manipulation.

    Example:
        truthseeker analyze image profile.jpg
    """
    media = _encode(path)
    task = TaskKind.IMAGE_GUIDED if guided else TaskKind.IMAGE_AUTO
    if not ctx.obj["quiet"]:
        print_header("🔍 Forensic Mentor" if guided else "🔍 Image Forensics")
    run_analysis(
        ctx,
        task,
        {"data": media.data, "mime_type": media.mime_type},
        source=media.file_name,
        media_kind=MediaKind.IMAGE,
    )


@analyze.command("video")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def analyze_video(ctx, path):
    """Check a video for deepfake artifacts."""
    media = _encode(path)
    if not ctx.obj["quiet"]:
        print_header("🎬 Deepfake Video Analysis")
    run_analysis(
        ctx,
        TaskKind.VIDEO,
        {"data": media.data, "mime_type": media.mime_type},
        source=media.file_name,
        media_kind=MediaKind.VIDEO,
    )


@analyze.command("audio")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def analyze_audio(ctx, path):
    """Check a voice note for synthesis or splicing."""
    media = _encode(path)
    if not ctx.obj["quiet"]:
        print_header("🎙 Voice Analysis")
    run_analysis(
        ctx,
        TaskKind.AUDIO,
        {"data": media.data, "mime_type": media.mime_type},
        source=media.file_name,
        media_kind=MediaKind.AUDIO,
    )


@analyze.command("conversation")
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--screenshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extract the chat from a screenshot first",
)
@click.option("--context", "context_text", help="Background on how you met, what they claim, etc.")
@click.pass_context
def analyze_conversation(ctx, file, screenshot, context_text):
    """
    Analyze a chat transcript for manipulation patterns.

    The transcript comes from FILE, a --screenshot, or standard input.

    Example:
        truthseeker analyze conversation chat.txt --context "Met on Hinge 3 weeks ago"
    """
    if not ctx.obj["quiet"]:
        print_header("💬 Conversation Analysis")

    source = ""
    if screenshot is not None:
        media = _encode(screenshot)
        console.print("[dim]Extracting text from screenshot...[/dim]")
        extracted = run_analysis(
            ctx, TaskKind.CONVERSATION_OCR, {"data": media.data, "mime_type": media.mime_type}
        )
        text = extracted.text
        source = media.file_name
    elif file is not None:
        text = file.read_text(encoding="utf-8")
        source = file.name
    else:
        text = click.get_text_stream("stdin").read()

    if not text.strip():
        raise click.UsageError("No conversation text provided")

    payload = {"text": text}
    if context_text:
        payload["context"] = context_text

    result = run_analysis(
        ctx,
        TaskKind.CONVERSATION_TEXT,
        payload,
        source=source or "Conversation",
        media_kind=MediaKind.CONVERSATION,
    )
    analysis = ConversationAnalysis.model_validate(result.structured or {})
    print_conversation_analysis(analysis)


@analyze.command("identity")
@click.argument("query")
@click.pass_context
def analyze_identity(ctx, query):
    """
    Search the web for a name, username or phone number.

    Example:
        truthseeker analyze identity "Dr. Mark Stevens UN doctor Syria"
    """
    if not ctx.obj["quiet"]:
        print_header("🌐 Identity Search")
    run_analysis(ctx, TaskKind.IDENTITY_SEARCH, {"query": query}, source=query)


@analyze.command("think")
@click.argument("scenario")
@click.pass_context
def analyze_think(ctx, scenario):
    """Deep-reasoning assessment of a described situation."""
    if not ctx.obj["quiet"]:
        print_header("🧠 Deep Forensic Reasoning")
    run_analysis(ctx, TaskKind.DEEP_REASONING, {"scenario": scenario})


@analyze.command("ocr")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def analyze_ocr(ctx, path):
    """Transcribe a chat screenshot, keeping speaker turns."""
    media = _encode(path)
    run_analysis(
        ctx,
        TaskKind.CONVERSATION_OCR,
        {"data": media.data, "mime_type": media.mime_type},
        source=media.file_name,
    )


# =============================================================================
# SIMULATE COMMAND
# =============================================================================


@truthseeker.command()
@click.argument("prompt")
@click.option("--aspect-ratio", type=click.Choice(ASPECT_RATIOS), default="1:1", show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Where to save the image")
@click.pass_context
def simulate(ctx, prompt, aspect_ratio, output):
    """
    Generate a watermarked example of a fake persona photo.

    Shows what scammers can produce; every image is stamped as synthetic.
    """
    if not ctx.obj["quiet"]:
        print_header("👻 Profile Simulator")

    result = run_analysis(
        ctx, TaskKind.PERSONA_SYNTHESIS, {"prompt": prompt, "aspect_ratio": aspect_ratio}
    )
    if not result.images:
        print_warning("No image generated. Policy safety block may have been triggered.")
        return

    stamped = apply_simulation_watermark(result.images[0].data)
    if output is None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        output = _config(ctx).paths.output_dir / f"simulation-{stamp}.jpg"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(stamped)

    if result.text:
        console.print(result.text, markup=False)
    print_success(f"Watermarked image saved to {output}")


# =============================================================================
# CASE RECORD COMMANDS
# =============================================================================


@truthseeker.group()
def history():
    """Past analyses in this case."""


@history.command("list")
@click.pass_context
def history_list(ctx):
    """List recorded analyses, newest first."""
    store = _load_store(ctx)
    if not len(store.history):
        console.print("No analyses recorded yet.")
        return

    table = Table(title="Case History")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Risk")
    table.add_column("Summary")
    for item in store.history:
        table.add_row(
            item.id, item.date, item.file_name, item.file_type.value,
            _risk_text(item.risk_level), item.result_summary,
        )
    console.print(table)


@truthseeker.group()
def journal():
    """Document interactions and red flags."""


@journal.command("new")
@click.option("--title", help="Entry title")
@click.option("--content", help="Entry body")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def journal_new(ctx, title, content, tags):
    """Create a journal entry."""
    store = _load_store(ctx)
    entry = store.journal.create()
    store.journal.update(entry.id, title=title, content=content, tags=list(tags) if tags else None)
    store.save()
    print_success(f"Created journal entry {entry.id}")


@journal.command("list")
@click.pass_context
def journal_list(ctx):
    """List journal entries, newest first."""
    store = _load_store(ctx)
    if not len(store.journal):
        console.print("No journal entries yet.")
        return

    table = Table(title="Journal")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Title")
    table.add_column("Tags")
    for entry in store.journal:
        table.add_row(entry.id, entry.date, entry.title, ", ".join(entry.tags))
    console.print(table)


@journal.command("show")
@click.argument("entry_id")
@click.pass_context
def journal_show(ctx, entry_id):
    """Print one journal entry."""
    store = _load_store(ctx)
    try:
        entry = store.journal.get(entry_id)
    except KeyError:
        print_error(f"No journal entry {entry_id}")
        sys.exit(1)

    tags = f"\n\n[dim]Tags: {', '.join(entry.tags)}[/dim]" if entry.tags else ""
    print_info_panel(f"{entry.title} ({entry.date})", f"{entry.content}{tags}")


@journal.command("edit")
@click.argument("entry_id")
@click.option("--title", help="New title")
@click.option("--content", help="New body")
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable)")
@click.pass_context
def journal_edit(ctx, entry_id, title, content, tags):
    """Edit a journal entry in place."""
    store = _load_store(ctx)
    try:
        store.journal.update(entry_id, title=title, content=content, tags=list(tags) if tags else None)
    except KeyError:
        print_error(f"No journal entry {entry_id}")
        sys.exit(1)
    store.save()
    print_success("Journal entry updated")


@journal.command("delete")
@click.argument("entry_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@click.pass_context
def journal_delete(ctx, entry_id, force):
    """Delete a journal entry."""
    if not force and not confirm(f"Delete journal entry {entry_id}?"):
        return
    store = _load_store(ctx)
    try:
        store.journal.delete(entry_id)
    except KeyError:
        print_error(f"No journal entry {entry_id}")
        sys.exit(1)
    store.save()
    print_success("Journal entry deleted")


@journal.command("template")
@click.argument("entry_id")
@click.argument("name", type=click.Choice(list(RED_FLAG_TEMPLATES)))
@click.pass_context
def journal_template(ctx, entry_id, name):
    """Append a red-flag template to an entry."""
    store = _load_store(ctx)
    try:
        store.journal.insert_template(entry_id, name)
    except KeyError:
        print_error(f"No journal entry {entry_id}")
        sys.exit(1)
    store.save()
    print_success(f"Inserted '{name}' template")


# =============================================================================
# EVIDENCE & REPORT COMMANDS
# =============================================================================


@truthseeker.command()
@click.pass_context
def evidence(ctx):
    """List evidence items available for a report, oldest first."""
    history_items, journal_entries = _load_store(ctx).snapshot()
    items = build_evidence_items(history_items, journal_entries)
    if not items:
        console.print("No evidence yet. Run an analysis or write a journal entry first.")
        return

    table = Table(title="Evidence")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Risk")
    table.add_column("Checksum", style="dim")
    for item in items:
        table.add_row(
            item.id, format_long_date(item.date), item.kind.value, item.title,
            _risk_text(item.risk_level), item_checksum(item) or "",
        )
    console.print(table)


@truthseeker.command()
@click.option("--item", "item_ids", multiple=True, help="Evidence ID to include (default: all)")
@click.option("--assessment", help="Overall assessment for the executive summary")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False, path_type=Path), help="Directory for the report")
@click.option("--json", "as_json", is_flag=True, help="Also write the evidence package as JSON")
@click.option("--open", "open_browser", is_flag=True, help="Open the report in a browser to print")
@click.pass_context
def report(ctx, item_ids, assessment, output_dir, as_json, open_browser):
    """
    Export an evidence report.

    Example:
        truthseeker report --item case-0 --item journal-1 --open
    """
    config = _config(ctx)
    history_items, journal_entries = _load_store(ctx).snapshot()
    items = build_evidence_items(history_items, journal_entries)

    if item_ids:
        unknown = set(item_ids) - {item.id for item in items}
        if unknown:
            print_error(f"Unknown evidence IDs: {', '.join(sorted(unknown))}")
            sys.exit(1)
        items = [item for item in items if item.id in set(item_ids)]

    compiler = ReportCompiler(config=config.report)
    try:
        compiled = compiler.compile(items, assessment)
    except ValueError as e:
        print_error(str(e))
        sys.exit(1)

    output_dir = output_dir or config.paths.output_dir
    path = compiled.export(output_dir)
    print_success(f"Report {compiled.package.case_id} saved to {path}")

    if as_json:
        json_path = path.with_suffix(".json")
        json_path.write_text(json.dumps(compiled.to_dict(), indent=2), encoding="utf-8")
        print_success(f"Package data saved to {json_path}")

    stats = compiled.package.stats
    console.print(
        f"Items: {stats.total_items}  High risk: {stats.high_risk_count}  "
        f"Medium risk: {stats.medium_risk_count}"
    )

    if open_browser or config.report.open_after_export:
        webbrowser.open(path.resolve().as_uri())


@truthseeker.command("search-links")
def search_links():
    """Reverse image search services to check a profile photo by hand."""
    table = Table(title="Reverse Image Search")
    table.add_column("Service", style="cyan")
    table.add_column("URL")
    table.add_column("Best for")
    for service in search_services():
        table.add_row(service.name, service.url, service.description)
    console.print(table)


# =============================================================================
# CONFIG GROUP
# =============================================================================


@truthseeker.group()
def config():
    """Manage configuration settings."""


@config.command()
@click.pass_context
def show(ctx):
    """Display current configuration."""
    cfg = _config(ctx)
    manager = APIKeyManager()
    has_key = manager.get_key() is not None

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("API Key", f"[CONFIGURED via {manager.get_key_source().value}]" if has_key else "[red]not set[/red]")
    table.add_row("Pro model", cfg.ai.pro_model)
    table.add_row("Flash model", cfg.ai.flash_model)
    table.add_row("Image model", cfg.ai.image_model)
    table.add_row(
        "Thinking budgets",
        ", ".join(f"{tier}={budget}" for tier, budget in cfg.ai.thinking_budgets.items()),
    )
    table.add_row("Case file", str(cfg.paths.case_file))
    table.add_row("Reports", str(cfg.paths.output_dir))
    console.print(table)


@config.command("set-key")
def set_key():
    """Store the Gemini API key in the system keyring."""
    print_header("🔑 Set Gemini API Key")
    api_key = click.prompt("Enter your Gemini API key", hide_input=True)

    manager = APIKeyManager()
    try:
        manager.store_key(api_key)
    except APIKeyError as e:
        print_error(str(e))
        sys.exit(1)

    print_success("API key stored in system keyring")
    if manager.get_key() is not None and manager.get_key_source() == KeySource.ENVIRONMENT:
        print_warning("GEMINI_API_KEY/API_KEY is set and takes precedence over the keyring")


@config.command("clear-key")
@click.option("--force", is_flag=True, help="Skip confirmation")
def clear_key(force):
    """Remove the stored API key from the keyring."""
    if not force and not confirm("Remove API key?"):
        return

    if APIKeyManager().delete_key():
        print_success("API key removed")
    else:
        print_warning("No API key stored in the keyring")


# =============================================================================
# VERSION COMMAND
# =============================================================================


@truthseeker.command()
def version():
    """Show version information."""
    console.print(f"TruthSeeker [bold]{__version__}[/bold]")
    console.print(f"Python: {sys.version.split()[0]}")


def main():
    """Entry point for the console script."""
    truthseeker(obj={})


if __name__ == "__main__":
    main()
