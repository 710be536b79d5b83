from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence

from .appview_client import AppViewClient, build_http_client
from .config import apply_env_overrides, load_config
from .config_schema import AppConfig
from .document import error_page
from .errors import BadInputError, ConfigError, ThreadUnrollError
from .outcomes import outcome_for
from .post import Thread
from .reference import PostReference, parse_reference, post_reference
from .run_log import RequestLogger
from .service import render_thread_page, unroll_thread


def _add_common_arguments(sub: argparse.ArgumentParser) -> None:
    sub.add_argument(
        "url",
        nargs="?",
        help="Post URL (https://bsky.app/profile/<handle>/post/<id>) or its path.",
    )
    sub.add_argument("--handle", help="Author handle or DID (with --post-id).")
    sub.add_argument("--post-id", help="Post record key (with --handle).")
    sub.add_argument("--config", help="Path to YAML config file.")
    sub.add_argument("--log", help="Append JSONL events to this file instead of stderr.")
    sub.add_argument(
        "--offline",
        action="store_true",
        help="Serve upstream calls from a small canned thread; no network.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thread-unroll")

    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser(
        "render",
        help="Resolve a self-reply thread and write it as one HTML page.",
    )
    _add_common_arguments(render)
    render.add_argument("--out", help="Write the page here instead of stdout.")
    render.set_defaults(_handler=_cmd_render)

    resolve = subparsers.add_parser(
        "resolve",
        help="Resolve a self-reply thread and print it as JSON.",
    )
    _add_common_arguments(resolve)
    resolve.set_defaults(_handler=_cmd_resolve)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _load(args: argparse.Namespace) -> AppConfig:
    return apply_env_overrides(load_config(args.config))


def _reference(args: argparse.Namespace, config: AppConfig) -> PostReference:
    if args.url and (args.handle or args.post_id):
        raise BadInputError("Pass either a URL or --handle/--post-id, not both")
    if args.url:
        return parse_reference(args.url, host=config.site.web_host)
    if args.handle is None or args.post_id is None:
        raise BadInputError("A post URL or both --handle and --post-id are required")
    return post_reference(args.handle, args.post_id)


def _open_logger(args: argparse.Namespace) -> RequestLogger:
    if args.log:
        return RequestLogger.open(args.log)
    return RequestLogger.open(stream=sys.stderr)


async def _resolve(
    reference: PostReference,
    config: AppConfig,
    *,
    offline: bool,
    logger: RequestLogger,
) -> Thread:
    if offline:
        from .offline import offline_app_view

        http = offline_app_view().http_client(config.upstream.base_url)
    else:
        http = build_http_client(config.upstream)

    async with http:
        client = AppViewClient(http, logger=logger)
        return await unroll_thread(reference, client=client, config=config, logger=logger)


def _thread_json(thread: Thread) -> dict[str, Any]:
    data = asdict(thread)
    for post, out in zip(thread.posts, data["posts"]):
        if post.embed is not None:
            out["embed"]["kind"] = type(post.embed).__name__
    return data


def _write_text(path: str | None, text: str) -> None:
    if path is None:
        sys.stdout.write(text)
        return
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text, encoding="utf-8")


def _cmd_render(args: argparse.Namespace) -> int:
    cfg = _load(args)

    with _open_logger(args) as log:
        log.info("render_command_started", url=args.url, offline=bool(args.offline))
        try:
            reference = _reference(args, cfg)
            thread = asyncio.run(
                _resolve(reference, cfg, offline=bool(args.offline), logger=log)
            )
            page = render_thread_page(thread, cfg)
        except ThreadUnrollError as e:
            log.warning("render_command_failed", error=type(e).__name__)
            _write_error_page(args.out, e, cfg)
            raise
        except Exception as e:
            log.exception("render_command_failed", exc=e)
            _write_error_page(args.out, e, cfg)
            raise

        _write_text(args.out, page)
        log.info("render_command_completed", posts=len(thread.posts), out=args.out)

    return 0


def _write_error_page(path: str | None, exc: BaseException, cfg: AppConfig) -> None:
    if path:
        _write_text(path, error_page(outcome_for(exc), site_name=cfg.site.site_name))


def _cmd_resolve(args: argparse.Namespace) -> int:
    cfg = _load(args)

    with _open_logger(args) as log:
        try:
            reference = _reference(args, cfg)
            thread = asyncio.run(
                _resolve(reference, cfg, offline=bool(args.offline), logger=log)
            )
        except ThreadUnrollError:
            raise
        except Exception as e:
            log.exception("resolve_command_failed", exc=e)
            raise

    print(json.dumps(_thread_json(thread), indent=2, ensure_ascii=False, default=str))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except (ConfigError, ThreadUnrollError) as e:
        outcome = outcome_for(e)
        _eprint(f"{outcome.title}: {outcome.message}")
        if isinstance(e, ConfigError):
            _eprint(str(e))
        return outcome.exit_code
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {type(e).__name__}")
        return 1
