"""Entrypoint: serve the HTTP API or run one generation task from the shell."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import sys

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from seo_content_agent.config import load_settings
from seo_content_agent.errors import InputValidationError
from seo_content_agent.llm.registry import ProviderRegistry
from seo_content_agent.llm.types import ChainExhaustedError
from seo_content_agent.orchestrator import route_table, run_task
from seo_content_agent.tasks import GenerationTask


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SEO content generation service")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")

    subparsers = parser.add_subparsers(dest="command")
    serve = subparsers.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    generate = subparsers.add_parser("generate", help="Run one task and print the JSON response")
    generate.add_argument("task", choices=[t.value for t in GenerationTask])
    generate.add_argument("--model", required=True, help="Model alias, e.g. gpt4 or claude")
    generate.add_argument("--api-key", default=None, help="Key for the primary provider (defaults to env)")
    generate.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Task field such as topic=... or targetKeywords=...; repeatable",
    )

    subparsers.add_parser("show-routes", help="Print the provider chain for every model alias")
    return parser


def _parse_fields(items: list[str]) -> dict[str, str]:
    fields = {}
    for item in items:
        if "=" not in item:
            raise SystemExit(f"Invalid --field value (expected NAME=VALUE): {item}")
        name, value = item.split("=", 1)
        fields[name.strip()] = value
    return fields


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = _build_parser()
    args = parser.parse_args()
    command = args.command or "serve"

    config = load_settings(args.settings)

    if command == "show-routes":
        for alias, tasks in route_table(config).items():
            print(alias)
            for task, routes in tasks.items():
                print(f"  {task}: {' -> '.join(routes)}")
        return

    if command == "generate":
        payload = _parse_fields(args.field)
        payload["model"] = args.model
        if args.api_key:
            payload["apiKey"] = args.api_key
        else:
            config["llm"]["require_caller_key"] = False
        try:
            body = run_task(args.task, payload, config, ProviderRegistry())
        except (InputValidationError, ChainExhaustedError) as exc:
            print(json.dumps({"error": str(exc)}), file=sys.stderr)
            raise SystemExit(1)
        print(json.dumps(body, indent=2, ensure_ascii=False))
        return

    import uvicorn

    from seo_content_agent.api import create_app

    server = config.get("server", {})
    uvicorn.run(
        create_app(config),
        host=getattr(args, "host", None) or server.get("host", "0.0.0.0"),
        port=getattr(args, "port", None) or int(server.get("port", 8000)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
