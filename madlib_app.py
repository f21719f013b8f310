import argparse
import logging
import sys
from typing import Any, Callable, List, Optional, Tuple

from prompt_toolkit import prompt as _pt_prompt
from prompt_toolkit.completion import PathCompleter
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from madlib import (
    DataLoadError,
    FillResult,
    MadlibConfig,
    MadlibError,
    TokenKind,
    fill_story,
    load_config,
    load_dictionary,
    read_text,
    save_config,
    write_output,
)

logger = logging.getLogger(__name__)

_console = Console(stderr=True, soft_wrap=True)

RETRY_MESSAGE = "Failed to open, please try again."

_OUTCOME_STYLE = {
    TokenKind.RESOLVED_VALUE: "green",
    TokenKind.UNRESOLVED_PLACEHOLDER: "yellow",
    TokenKind.PLAIN_WORD: "red",
}


def _ask(prompt: str) -> str:
    """Read one line from the user, with path completion on a terminal."""
    if sys.stdin and sys.stdin.isatty():
        return _pt_prompt(prompt, completer=PathCompleter()).strip()
    return input(prompt).strip()


def prompt_for_file(
    label: str,
    load: Callable[[str], Any] = read_text,
    ask: Optional[Callable[[str], str]] = None,
) -> Tuple[str, Any]:
    """Ask for a filename until ``load`` can open it. Returns (path, loaded)."""
    ask = ask or _ask
    while True:
        path = ask(f"Enter the {label} filename: ")
        if not path:
            continue
        try:
            return path, load(path)
        except DataLoadError as e:
            logger.debug("%s", e)
            _console.print(f"\n[red]{RETRY_MESSAGE}[/]\n")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=_console, show_path=False)],
        force=True,
    )


# ----------------- CLI -----------------
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="madlibs", description="Fill in a madlib story from a dictionary of words.")
    parser.add_argument("--story", type=str, help="Story file with [key] placeholders")
    parser.add_argument("--dictionary", type=str, help="Dictionary file of key/value pairs")
    parser.add_argument("--output", type=str, help="Where to write the filled story ('-' for stdout)")
    parser.add_argument(
        "--spacing-from-resolved",
        dest="spacing_from_resolved",
        action="store_true",
        default=None,
        help="Pick one or two spaces after a word from the substituted word instead of the placeholder",
    )
    parser.add_argument("--report", action="store_true", help="Print a table of placeholder outcomes")
    parser.add_argument("--preview", action="store_true", help="Show the filled story in the console")
    parser.add_argument("--load-config", type=str, help="Load run configuration from a JSON file")
    parser.add_argument("--save-config", type=str, help="Save run configuration to a JSON file")
    parser.add_argument("--yes", action="store_true", help="Never prompt; missing filenames are an error")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MadlibConfig:
    cfg = MadlibConfig()
    if args.load_config:
        try:
            cfg = load_config(args.load_config)
        except MadlibError as e:
            _console.print(f"[yellow]Failed to load config from {escape(args.load_config)}: {escape(str(e))}[/]")
    # Flags given on the command line win over the config file
    for attr, value in (
        ("story_path", args.story),
        ("dictionary_path", args.dictionary),
        ("output_path", args.output),
        ("spacing_from_resolved", args.spacing_from_resolved),
    ):
        if value is not None:
            setattr(cfg, attr, value)
    return cfg


def render_report(result: FillResult) -> Table:
    table = Table(title="Placeholders")
    table.add_column("#", justify="right")
    table.add_column("Token")
    table.add_column("Written as")
    table.add_column("Outcome")
    n = 0
    for tok in result.tokens:
        if tok.key is None:
            continue
        n += 1
        outcome = "unknown key" if tok.kind is TokenKind.PLAIN_WORD else tok.kind.value
        style = _OUTCOME_STYLE[tok.kind]
        table.add_row(str(n), escape(tok.original), escape(tok.text), f"[{style}]{outcome}[/]")
    table.caption = (
        f"{result.count(TokenKind.RESOLVED_VALUE)} filled, "
        f"{result.count(TokenKind.UNRESOLVED_PLACEHOLDER)} unfilled, "
        f"{result.entries_left} dictionary entries unused"
    )
    return table


def _load_input(path: Optional[str], label: str, interactive: bool, load: Callable[[str], Any]) -> Tuple[str, Any]:
    if path:
        return path, load(path)
    if not interactive:
        raise MadlibError(f"No {label} file given (use --{label})")
    return prompt_for_file(label, load)


def run(cfg: MadlibConfig, interactive: bool = True) -> Tuple[FillResult, str]:
    story_path, story_text = _load_input(cfg.story_path, "story", interactive, read_text)
    dict_path, entries = _load_input(cfg.dictionary_path, "dictionary", interactive, load_dictionary)
    output_path = cfg.output_path
    if not output_path:
        if not interactive:
            raise MadlibError("No output file given (use --output)")
        while not output_path:
            output_path = _ask("Enter the output filename: ")
    cfg.story_path, cfg.dictionary_path, cfg.output_path = story_path, dict_path, output_path

    result = fill_story(story_text, entries, spacing_from_resolved=cfg.spacing_from_resolved)
    if output_path == "-":
        sys.stdout.write(result.text)
        sys.stdout.flush()
    else:
        write_output(result.text, output_path)
    return result, output_path


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    cfg = build_config(args)

    try:
        result, output_path = run(cfg, interactive=not args.yes)
    except MadlibError as e:
        _console.print(f"[bold red]{escape(str(e))}[/]")
        return 1
    except (EOFError, KeyboardInterrupt):
        _console.print("[red]Aborted.[/]")
        return 1

    if args.save_config:
        try:
            save_config(cfg, args.save_config)
            _console.print(f"Configuration saved to {escape(args.save_config)}")
        except MadlibError as e:
            _console.print(f"[yellow]Failed to save configuration: {escape(str(e))}[/]")

    if args.preview:
        _console.print(Panel(escape(result.text), title="Your Madlib"))
    if args.report:
        _console.print(render_report(result))
    if output_path != "-":
        _console.print(f"[green]Saved story to {escape(output_path)}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
