"""CLI entrypoint driving the survey item lifecycle controller."""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any, Dict, Optional

from rich.prompt import Confirm

from config import get_settings
from controller import ItemLifecycleController, RecordingDispatcher
from core import SurveyItem
from utils.logger import setup_logger


def _item_json(item: Optional[SurveyItem]) -> Optional[Dict[str, Any]]:
    return item.to_wire() if item is not None else None


def _print(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, default=str))


def _confirm_prompt(prompt: str) -> bool:
    return Confirm.ask(prompt, default=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Survey item lifecycle CLI")
    parser.add_argument("--base-url", default="", help="Survey API base URL (defaults to settings)")
    parser.add_argument("--category", default="", help="Active category filter")
    parser.add_argument("--component", default="", help="Active component filter")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list")
    sub.add_parser("counts")

    upload = sub.add_parser("upload")
    upload.add_argument("path")
    upload.add_argument("--content-type", default=None)

    for name in ("analyze", "embed", "show", "delete"):
        stage = sub.add_parser(name)
        stage.add_argument("--item-id", required=True)

    briefing = sub.add_parser("briefing")
    briefing.add_argument("--item-id", required=True)
    briefing.add_argument("--yes", action="store_true", help="Overwrite an existing briefing without asking")

    update = sub.add_parser("update")
    update.add_argument("--item-id", required=True)
    update.add_argument("--fields-json", required=True, help='e.g. {"title": "Cockpit HUD"}')

    search = sub.add_parser("search")
    search.add_argument("--query", default="")
    search.add_argument("--similar-to", default="", help="Item id for similar-mode search")
    search.add_argument("--space", choices=["briefing", "full"], default=None)

    serve = sub.add_parser("serve-dev")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=3000)
    return parser


async def _run(args: argparse.Namespace) -> Dict[str, Any]:
    settings = get_settings()
    if args.base_url:
        settings = settings.model_copy(
            update={"service": settings.service.model_copy(update={"base_url": args.base_url})}
        )

    confirm = (lambda _prompt: True) if getattr(args, "yes", False) else _confirm_prompt
    events = RecordingDispatcher()
    async with ItemLifecycleController(dispatch=events, confirm=confirm, settings=settings) as controller:
        if args.category or args.component:
            await controller.set_filters(args.category or None, args.component or None)
        else:
            await controller.load_items()

        command = args.command
        if command == "list":
            return {"items": [item.to_wire() for item in controller.cache.visible], "toasts": events.toasts()}

        if command == "counts":
            return {"counts": controller.item_counts}

        if command == "upload":
            item = await controller.upload_item(args.path, content_type=args.content_type)
            return {
                "item": _item_json(controller.cache.get(item.id)),
                "pipeline_status": controller.pipeline_status.value,
                "toasts": events.toasts(),
            }

        if command == "update":
            fields = json.loads(args.fields_json or "{}")
            item = await controller.update_item({**fields, "id": args.item_id})
            return {"item": _item_json(item), "toasts": events.toasts()}

        if command == "delete":
            deleted = await controller.delete_item(args.item_id)
            return {"deleted": deleted, "toasts": events.toasts()}

        if command == "show":
            item = await controller.load_item_details(args.item_id)
            return {"item": _item_json(item), "toasts": events.toasts()}

        if command == "analyze":
            item = await controller.analyze_item(args.item_id)
            return {"item": _item_json(item), "toasts": events.toasts()}

        if command == "embed":
            item = await controller.embed_item(args.item_id)
            return {"item": _item_json(item), "toasts": events.toasts()}

        if command == "briefing":
            item = await controller.generate_briefing(args.item_id)
            return {"item": _item_json(item), "toasts": events.toasts()}

        if command == "search":
            if args.similar_to:
                controller.select_item(args.similar_to)
                await controller.load_item_details()
                results = await controller.search(None, "similar", args.space)
            else:
                results = await controller.search(args.query, "query", args.space)
            return {
                "items": [item.to_wire() for item in results or []],
                "toasts": events.toasts(),
            }

    raise ValueError(f"unknown command: {args.command}")


def main() -> int:
    args = build_parser().parse_args()
    log_settings = get_settings().logging
    setup_logger(level=log_settings.level, log_file=log_settings.file, use_rich=log_settings.use_rich)

    if args.command == "serve-dev":
        import uvicorn

        uvicorn.run("webapp.dev_service:app", host=args.host, port=args.port)
        return 0

    _print(asyncio.run(_run(args)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
