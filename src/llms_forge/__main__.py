"""llms-forge entry point."""

import asyncio
import json
import sys
from pathlib import Path

_USAGE = """usage: llms-forge [command]

  (no command)          run the MCP server on stdio
  discover <url>        find where a site publishes llms.txt
  extract <url>         fetch and split a site's llms.txt
  verify <url>          report llms.txt / install.md availability
  check-install <path>  parse a local install.md (exit 1 if invalid)
"""


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _run_url_command(command: str, url: str) -> int:
    from llms_forge.sources.discovery import discover, verify_site
    from llms_forge.sources.extract import extract_documentation
    from llms_forge.sources.urls import InvalidUrlError

    try:
        match command:
            case "discover":
                result = asyncio.run(discover(url))
            case "verify":
                result = asyncio.run(verify_site(url))
            case _:
                result = asyncio.run(extract_documentation(url))
    except InvalidUrlError as e:
        print(f"Error: Invalid URL {url!r}: {e}", file=sys.stderr)
        return 2

    if result is None:
        print(f"Error: No llms.txt found for {url}", file=sys.stderr)
        return 1
    _print_json(result.model_dump())
    match command:
        case "discover":
            return 0 if result.found else 1
        case "verify" if result.status == "error":
            return 2
        case "verify":
            return 0 if result.status == "online" else 1
    return 0


def _check_install(path: str) -> int:
    """Parse a local install.md and print the result."""
    from llms_forge.sources.install_md import get_install_md_summary, parse_install_md

    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return 2

    parsed = parse_install_md(content)
    _print_json(
        {
            "is_valid": parsed.is_valid,
            "errors": parsed.validation_errors,
            "summary": get_install_md_summary(parsed),
        }
    )
    return 0 if parsed.is_valid else 1


def _cli() -> None:
    """CLI dispatcher: server (default) or a one-shot subcommand."""
    command = sys.argv[1] if len(sys.argv) >= 2 else None

    if command in ("discover", "extract", "verify", "check-install"):
        if len(sys.argv) < 3:
            print(_USAGE, file=sys.stderr)
            sys.exit(2)
        if command == "check-install":
            sys.exit(_check_install(sys.argv[2]))
        sys.exit(_run_url_command(command, sys.argv[2]))
    elif command in ("-h", "--help", "help"):
        print(_USAGE)
    else:
        from llms_forge.server import main

        main()


if __name__ == "__main__":
    _cli()
