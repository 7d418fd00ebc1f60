"""Command handling utilities for special commands."""

from __future__ import annotations

import math
import sys
from typing import Callable, Dict, Optional

from rich.markup import escape

from chat.attachments import AttachmentError, describe, get_mime_type, is_path_safe
from providers.gemini import GeminiAPIError, list_models
from util.config import load_settings, save_settings

PASTE_HINT = "Pasting content. Press Ctrl+D when done."


def show_help_message(console) -> None:
    """Display help message with all available commands."""
    console.print("\n[bold cyan]Commands:[/bold cyan]")
    for name, text in (
        ("/help", "Show this help message."),
        ("/exit, /quit", "Exit the program."),
        ("/clear", "Clear history and attachments for a new chat."),
        ("/stats", "Show session statistics (tokens, model, etc.)."),
        ("/config <save|load>", "Save or load settings to the config file."),
        ("/system [prompt]", "Set/show the system prompt for the conversation."),
        ("/clear_system", "Remove the system prompt."),
        ("/budget [tokens]", "Set/show the max thinking budget for the model."),
        ("/maxtokens [tokens]", "Set/show the max output tokens for the response."),
        ("/temp [temperature]", "Set/show the temperature for the response."),
        ("/topp [float]", "Set/show topP for the response."),
        ("/topk [integer]", "Set/show topK for the response."),
        ("/grounding [on|off]", "Set/show Google Search grounding."),
        ("/urlcontext [on|off]", "Set/show URL context fetching."),
        ("/attach <file>", "Attach a file to the next prompt."),
        ("/paste", "Paste text from stdin as an attachment."),
        ("/savelast <file.txt>", "Save the last model response to a text file."),
        ("/save <file.json>", "(Export) Save history to a specific file path."),
        ("/load <file.json>", "(Import) Load history from a specific file path."),
        ("/export <file.md>", "Export the conversation to a Markdown file."),
        ("/models", "List all available models from the API."),
    ):
        console.print(f"  [bold green]{escape(name):<22}[/bold green] - {text}")
    console.print("\n[bold cyan]History Management:[/bold cyan]")
    console.print("  [bold green]/history attachments list[/bold green]         - List file attachments in the conversation history.")
    console.print("  [bold green]/history attachments remove <id>[/bold green]  - Remove an attachment from history (e.g., 2:1).")
    console.print("\n[bold cyan]Attachment Management:[/bold cyan]")
    console.print("  [bold green]/attachments list[/bold green]            - List pending attachments for the next prompt.")
    console.print("  [bold green]/attachments remove <index>[/bold green]  - Remove a pending attachment by its index.")
    console.print("  [bold green]/attachments clear[/bold green]           - Remove all pending attachments.")
    console.print("\n[bold cyan]Session Management:[/bold cyan]")
    console.print("  [bold green]/session new[/bold green]            - Start a new, unsaved session (same as /clear).")
    console.print("  [bold green]/session list[/bold green]           - List all saved sessions.")
    console.print("  [bold green]/session save <name>[/bold green]    - Save the current chat to a named session.")
    console.print("  [bold green]/session load <name>[/bold green]    - Load a named session.")
    console.print("  [bold green]/session delete <name>[/bold green]  - Delete a named session.")
    console.print()


def handle_special_commands(user_input: Optional[str], session, console, stdin=None) -> bool:
    """Handle slash commands. Returns True if the input was a command.

    Args:
        user_input: Line typed by the user
        session: ChatSession the command operates on
        console: Rich console for command output
        stdin: Stream read by /paste (defaults to sys.stdin)

    Returns:
        True if command was handled, False if the line is a prompt
    """
    if not user_input:
        return False
    line = user_input.strip()
    if not line.startswith("/"):
        return False

    command, _, arg = line.partition(" ")
    arg = arg.strip()
    handler = _COMMANDS.get(command)
    if handler is None:
        console.print(f"Unknown command: {escape(command)}. Type /help for a list of commands.")
        return True
    if command == "/paste":
        _cmd_paste(arg, session, console, stdin)
    else:
        handler(arg, session, console)
    return True


def _cmd_help(arg, session, console) -> None:
    show_help_message(console)


def _cmd_clear(arg, session, console) -> None:
    session.clear()
    console.print("New session started.")


def _cmd_stats(arg, session, console) -> None:
    settings = session.settings
    console.print("--- Session Stats ---")
    console.print(f"Model: {escape(settings.model)}")
    console.print(f"Temperature: {settings.temperature:.2f}")
    console.print(f"Seed: {settings.seed}")
    console.print(f"System Prompt: {escape(settings.system_prompt or 'Not set')}")
    console.print(f"Messages in history: {len(session.conversation.history)}")
    console.print(f"Pending attachments: {len(session.pending)}")
    if session.conversation.history or len(session.pending):
        if session.free_mode:
            console.print("Token count is not available in key-free mode.")
        else:
            tokens = session.count_tokens()
            if tokens is not None:
                console.print(f"Total tokens in context (incl. pending): {tokens}")
            else:
                console.print("Could not retrieve token count.")
    console.print("---------------------")


def _cmd_config(arg, session, console) -> None:
    sub = arg.split()[0] if arg else ""
    if sub == "save":
        try:
            path = save_settings(session.settings)
        except OSError as e:
            console.print(f"[red]Error saving configuration: {escape(str(e))}[/red]")
            return
        console.print(f"Configuration saved to {escape(str(path))}")
    elif sub == "load":
        load_settings(session.settings)
        console.print("Configuration reloaded from file.")
    else:
        console.print("Usage: /config <save|load>")


def _cmd_system(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        if settings.system_prompt:
            console.print(f"System prompt is:\n{escape(settings.system_prompt)}")
        else:
            console.print("System prompt is empty.")
        return
    settings.system_prompt = arg
    console.print(f"System prompt set to: '{escape(arg)}'")


def _cmd_clear_system(arg, session, console) -> None:
    if session.settings.system_prompt:
        session.settings.system_prompt = None
        console.print("System prompt cleared.")
    else:
        console.print("No system prompt was set.")


def _parse_int(text: str) -> Optional[int]:
    try:
        return int(text)
    except ValueError:
        return None


def _parse_float(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _cmd_budget(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        console.print(f"Thinking budget: {settings.thinking_budget} tokens.")
        return
    budget = _parse_int(arg)
    if budget is None or budget < 0:
        console.print("[red]Error: Invalid budget value.[/red]")
        return
    if budget < 1:
        settings.thinking_budget = -1
        console.print("Thinking budget set to automatic.")
    else:
        settings.thinking_budget = budget
        console.print(f"Thinking budget set to {budget} tokens.")


def _cmd_maxtokens(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        console.print(f"Max output tokens: {settings.max_output_tokens} tokens.")
        return
    tokens = _parse_int(arg)
    if tokens is None or tokens <= 0:
        console.print("[red]Error: Invalid max tokens value.[/red]")
        return
    settings.max_output_tokens = tokens
    console.print(f"Max output tokens set to {tokens}.")


def _cmd_topk(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        if settings.top_k > 0:
            console.print(f"topK is set to: {settings.top_k}")
        else:
            console.print("topK is not set.")
        return
    value = _parse_int(arg)
    if value is None or value <= 0:
        console.print("[red]Error: Invalid topK value. Must be a positive integer.[/red]")
        return
    settings.top_k = value
    console.print(f"topK set to {value}.")


def _cmd_topp(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        if settings.top_p > 0:
            console.print(f"topP is set to: {settings.top_p:.2f}")
        else:
            console.print("topP is not set.")
        return
    value = _parse_float(arg)
    if value is None or value <= 0.0 or value > 1.0:
        console.print("[red]Error: Invalid topP value. Must be between 0.0 and 1.0.[/red]")
        return
    settings.top_p = value
    console.print(f"topP set to {value:.2f}.")


def _cmd_temp(arg, session, console) -> None:
    settings = session.settings
    if not arg:
        console.print(f"Temperature: {settings.temperature:.2f}.")
        return
    value = _parse_float(arg)
    if value is None or value <= 0:
        console.print("[red]Error: Invalid temperature value.[/red]")
        return
    settings.temperature = value
    console.print(f"Temperature set to {value:.2f}.")


def _toggle(arg, console, attr_owner, attr: str, label: str, usage: str) -> None:
    if not arg:
        state = "ON" if getattr(attr_owner, attr) else "OFF"
        console.print(f"{label} is {state}.")
    elif arg.lower() == "on":
        setattr(attr_owner, attr, True)
        console.print(f"{label} turned ON.")
    elif arg.lower() == "off":
        setattr(attr_owner, attr, False)
        console.print(f"{label} turned OFF.")
    else:
        console.print(escape(usage))


def _cmd_grounding(arg, session, console) -> None:
    _toggle(arg, console, session.settings, "google_grounding", "Google grounding", "Usage: /grounding [on|off]")


def _cmd_urlcontext(arg, session, console) -> None:
    _toggle(arg, console, session.settings, "url_context", "URL context", "Usage: /urlcontext [on|off]")


def _report_attached(part, session, console) -> None:
    if session.free_mode:
        label, mime_type = "stdin/file", "text/plain"
    else:
        label, mime_type = part.filename, part.mime_type
    console.print(f"Attached {escape(label)} (MIME: {escape(mime_type)}, Size: {part.size} bytes)")


def _cmd_attach(arg, session, console) -> None:
    if not arg:
        console.print("Usage: /attach <filename>")
        return
    try:
        part = session.pending.attach(None, arg, get_mime_type(arg), session.free_mode)
    except AttachmentError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return
    except OSError as e:
        console.print(f"[red]Error opening file: {escape(str(e))}[/red]")
        return
    _report_attached(part, session, console)


def _cmd_paste(arg, session, console, stdin=None) -> None:
    console.print(PASTE_HINT)
    try:
        part = session.pending.attach(stdin or sys.stdin, "stdin", "text/plain", session.free_mode)
    except AttachmentError as e:
        console.print(f"[yellow]Warning: {escape(str(e))}[/yellow]")
        return
    except OSError as e:
        console.print(f"[red]Error reading from input stream: {escape(str(e))}[/red]")
        return
    _report_attached(part, session, console)


def _cmd_savelast(arg, session, console) -> None:
    if session.last_response is None:
        console.print("No last response to save.")
        return
    if not is_path_safe(arg):
        console.print("[red]Error: Unsafe file path for saving last response.[/red]")
        return
    try:
        with open(arg, "w", encoding="utf-8") as f:
            f.write(session.last_response)
    except OSError as e:
        console.print(f"[red]Failed to save last response: {escape(str(e))}[/red]")
        return
    console.print(f"Last response saved to {escape(arg)}")


def _unsafe_path(arg, console) -> bool:
    if is_path_safe(arg):
        return False
    console.print(f"[red]Error: Unsafe or absolute file path specified: {escape(arg)}[/red]")
    return True


def _cmd_save(arg, session, console) -> None:
    if _unsafe_path(arg, console):
        return
    try:
        session.save(arg)
    except OSError as e:
        console.print(f"[red]Failed to open file for writing: {escape(str(e))}[/red]")
        return
    console.print(f"Conversation history saved to {escape(arg)}")


def _cmd_load(arg, session, console) -> None:
    if _unsafe_path(arg, console):
        return
    try:
        session.load(arg)
    except OSError as e:
        console.print(f"[red]Failed to open file for reading: {escape(str(e))}[/red]")
        return
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return
    console.print(f"Conversation history loaded from {escape(arg)}")


def _cmd_export(arg, session, console) -> None:
    if not arg:
        console.print("Usage: /export <filename.md>")
        return
    if _unsafe_path(arg, console):
        return
    console.print(f"Exporting conversation to {escape(arg)}...")
    try:
        session.export(arg)
    except OSError as e:
        console.print(f"[red]Failed to open file for export: {escape(str(e))}[/red]")
        return
    console.print(f"Successfully exported history to {escape(arg)}")


def _cmd_models(arg, session, console) -> None:
    console.print("Fetching available models...")
    try:
        models = list_models(session.client, session.settings)
    except GeminiAPIError as e:
        console.print(f"\n[red]{escape(str(e))}[/red]")
        console.print("No models were found or an error occurred.")
        return
    if not models:
        console.print("No models were found or an error occurred.")
        return
    for name, display in models:
        print(f"- {name} ({display})")
    console.print(f"\nFound {len(models)} models.")


def _cmd_history(arg, session, console) -> None:
    words = arg.split()
    if not words or words[0] != "attachments":
        console.print("Unknown command for '/history'. Try '/history attachments'.")
        return
    action = words[1] if len(words) > 1 else "list"
    if action == "list":
        console.print("--- Attachments in History ---")
        found = False
        for i, j, role, part in session.conversation.history_attachments():
            if not found:
                console.print("  ID      | Role  | Filename / Description")
                console.print("----------|-------|----------------------------------------")
                found = True
            name = part.filename or "Pasted/Loaded Data"
            console.print(escape(f"  [{i:<2}:{j:<2}] | {role:<5} | {name} (MIME: {part.mime_type})"))
        if not found:
            console.print("  (No file attachments found in history)")
        console.print("------------------------------")
    elif action == "remove":
        if len(words) < 3:
            console.print("Usage: /history attachments remove <msg_idx:part_idx>")
            return
        msg_text, sep, part_text = words[2].partition(":")
        msg_idx, part_idx = _parse_int(msg_text), _parse_int(part_text)
        if not sep or msg_idx is None or part_idx is None:
            console.print("[red]Error: Invalid ID format. Use <msg_idx:part_idx>.[/red]")
            return
        try:
            part = session.conversation.remove_history_attachment(msg_idx, part_idx)
        except (IndexError, ValueError) as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            return
        console.print(escape(f"Removing attachment [{msg_idx}:{part_idx}]: {part.filename or 'Pasted Data'}"))
    else:
        console.print("Unknown command for '/history attachments'. Use 'list' or 'remove'.")


def _cmd_attachments(arg, session, console) -> None:
    words = arg.split()
    sub = words[0] if words else "list"
    if sub == "list":
        if not len(session.pending):
            console.print("No pending attachments.")
            return
        console.print("Pending Attachments:")
        for i, part in enumerate(session.pending):
            console.print(escape(f"  [{i}] {describe(part)}"))
    elif sub == "clear":
        session.pending.clear()
        console.print("All pending attachments cleared.")
    elif sub == "remove":
        if len(words) < 2:
            console.print("Usage: /attachments remove <index>")
            return
        index = _parse_int(words[1])
        if index is None or not 0 <= index < len(session.pending):
            console.print("[red]Error: Invalid attachment index.[/red]")
            return
        part = session.pending.remove(index)
        console.print(f"Removing attachment: {escape(part.filename or describe(part))}")
    else:
        console.print(f"Unknown attachments command: '{escape(sub)}'. Use list, remove, or clear.")


def _cmd_session(arg, session, console) -> None:
    words = arg.split()
    sub = words[0] if words else ""
    name = words[1] if len(words) > 1 else ""
    recorder = session.recorder

    if sub == "new":
        _cmd_clear("", session, console)
        return
    if sub == "list":
        console.print("Saved Sessions:")
        names = recorder.list_sessions()
        for saved in names:
            console.print(f"  - {escape(saved)}")
        if not names:
            console.print("  (No sessions found)")
        return
    if sub not in ("save", "load", "delete"):
        console.print(f"Unknown session command: '{escape(sub)}'. Use '/help' to see options.")
        return
    if not name:
        console.print(f"Usage: /session {sub} <name>")
        return

    try:
        path = recorder.session_path(name)
        if sub == "save":
            session.save(path)
            session.session_name = name
            console.print(f"Conversation history saved to {escape(str(path))}")
        elif sub == "load":
            session.load(path)
            session.session_name = name
            console.print(f"Conversation history loaded from {escape(str(path))}")
        else:
            recorder.delete_session(name)
            console.print(f"Session '{escape(name)}' deleted.")
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")


_COMMANDS: Dict[str, Callable] = {
    "/help": _cmd_help,
    "/clear": _cmd_clear,
    "/stats": _cmd_stats,
    "/config": _cmd_config,
    "/system": _cmd_system,
    "/clear_system": _cmd_clear_system,
    "/budget": _cmd_budget,
    "/maxtokens": _cmd_maxtokens,
    "/temp": _cmd_temp,
    "/topp": _cmd_topp,
    "/topk": _cmd_topk,
    "/grounding": _cmd_grounding,
    "/urlcontext": _cmd_urlcontext,
    "/attach": _cmd_attach,
    "/paste": _cmd_paste,
    "/savelast": _cmd_savelast,
    "/save": _cmd_save,
    "/load": _cmd_load,
    "/export": _cmd_export,
    "/models": _cmd_models,
    "/history": _cmd_history,
    "/attachments": _cmd_attachments,
    "/session": _cmd_session,
}
