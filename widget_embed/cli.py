"""Command line entry point for widget-embed."""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx

from widget_embed import __version__
from widget_embed.bootstrap import EmbedContext, parse_state_text, render_page
from widget_embed.config import settings
from widget_embed.diagnostics import CollectingDiagnostics
from widget_embed.dom import parse_html
from widget_embed.types import STATE_SELECTOR, VIEW_SELECTOR, StateParseError
from widget_embed.validation import SchemaValidator


def print_help():
    """Print help message."""
    print(f"""
widget-embed v{__version__}

Usage:
  widget-embed <command> <source> [options]

Commands:
  render SOURCE     Mount every embedded widget and write the resulting HTML
  validate SOURCE   Check widget-state and widget-view markers against the schemas

SOURCE is a path to an HTML file or an http(s) URL.

Options:
  -o, --output PATH   Write rendered HTML to PATH (default: stdout)
  --no-validate       Skip schema validation while rendering
  --log-level LEVEL   Logging level (default: $WIDGET_EMBED_LOG_LEVEL or WARNING)
  -h, --help          Show this help
  -v, --version       Show version
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None (render, validate)
        source: str | None
        output: str | None
        validate: bool
        log_level: str
        show_help: bool
        show_version: bool
    """
    result = {
        "command": None,
        "source": None,
        "output": None,
        "validate": True,
        "log_level": settings.LOG_LEVEL,
        "show_help": False,
        "show_version": False,
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("render", "validate") and result["command"] is None:
            result["command"] = arg
        elif arg in ("--output", "-o"):
            if i + 1 < len(args):
                result["output"] = args[i + 1]
                i += 1
            else:
                print("Error: --output requires a path")
                sys.exit(1)
        elif arg == "--log-level":
            if i + 1 < len(args):
                result["log_level"] = args[i + 1].upper()
                i += 1
            else:
                print("Error: --log-level requires a level")
                sys.exit(1)
        elif arg == "--no-validate":
            result["validate"] = False
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            print("Run 'widget-embed --help' for usage.")
            sys.exit(1)
        elif result["command"] is not None and result["source"] is None:
            result["source"] = arg
        else:
            print(f"Unknown command: {arg}")
            print("Run 'widget-embed --help' for usage.")
            sys.exit(1)

        i += 1

    return result


def read_source(source: str) -> str:
    """Read a page from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        response = httpx.get(source, timeout=settings.FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        return response.text
    return Path(source).read_text(encoding="utf-8")


def run_render(html: str, validate: bool) -> tuple[str, CollectingDiagnostics]:
    """Render a page; returns the new HTML and everything that was reported."""
    diagnostics = CollectingDiagnostics()
    context = EmbedContext(diagnostics=diagnostics, validate=validate)
    return asyncio.run(render_page(html, context)), diagnostics


def run_validate(html: str) -> int:
    """Print every schema violation in a page. Returns the number of problems."""
    document = parse_html(html)
    validator = SchemaValidator()
    problems = 0

    for kind, selector in (("state", STATE_SELECTOR), ("view", VIEW_SELECTOR)):
        for index, marker in enumerate(document.query_selector_all(selector)):
            label = f"{kind} marker #{index + 1}"
            try:
                if kind == "state":
                    payload = parse_state_text(marker.text_content)
                else:
                    payload = json.loads(marker.text_content)
            except (StateParseError, json.JSONDecodeError) as e:
                print(f"{label}: unparseable ({e})")
                problems += 1
                continue

            result = validator.validate(payload, kind)
            if result.valid:
                print(f"{label}: ok")
                continue
            for error in result.errors:
                print(f"{label}: {error.path or '/'}: {error.message}")
                problems += 1

    return problems


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"widget-embed {__version__}")
        return

    if args["command"] is None or args["source"] is None:
        print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args["log_level"], logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        html = read_source(args["source"])
    except (OSError, UnicodeDecodeError, httpx.HTTPError) as e:
        print(f"Error: could not read {args['source']}: {e}")
        sys.exit(1)

    if args["command"] == "validate":
        problems = run_validate(html)
        sys.exit(1 if problems else 0)

    rendered, diagnostics = run_render(html, args["validate"])
    if args["output"]:
        Path(args["output"]).write_text(rendered, encoding="utf-8")
    else:
        sys.stdout.write(rendered)

    failures = [d for d in diagnostics.diagnostics if d.level >= logging.ERROR]
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
