#!/usr/bin/env python3
"""Prompt run operations helper

Runs batches in-process, without a Celery worker. Useful for backfills and for
checking provider credentials end to end.

Examples:
  - One domain:   python scripts/run_prompts.py --action batch --domain <id> --provider claude
  - One prompt:   python scripts/run_prompts.py --action prompt --prompt <id>
  - All domains:  python scripts/run_prompts.py --action all
  - Status:       python scripts/run_prompts.py --action status --domain <id>
"""

from __future__ import annotations

import argparse
import asyncio
import json

from app.core.run_config import get_run_settings
from app.db.session import SessionLocal
from app.services.batch_orchestrator import BatchOrchestrator
from app.services.platform_manager import PlatformManager
from app.services.progress_tracker import get_status
from app.services.prompt_executor import PromptExecutor
from app.tasks.prompt_run_tasks import run_all_domains
from app.utils.error_handler import PromptRunError
from app.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Prompt run operations helper")
    parser.add_argument(
        "--action",
        choices=["batch", "prompt", "all", "status"],
        required=True,
        help="action to perform",
    )
    parser.add_argument("--domain", help="domain id (batch, status)")
    parser.add_argument("--prompt", help="prompt id (prompt)")
    parser.add_argument("--provider", default=None, help="chatgpt, claude or grok")
    parser.add_argument("--concurrency", type=int, default=None, help="worker pool width")
    args = parser.parse_args()

    configure_logging()

    if args.action == "all":
        summary = await run_all_domains(provider=args.provider)
        print(json.dumps(summary, indent=2))
        return 0

    db = SessionLocal()
    try:
        if args.action == "status":
            if not args.domain:
                parser.error("--domain is required for status")
            print(json.dumps(get_status(db, args.domain).to_dict(), indent=2))
            return 0

        if args.action == "batch":
            if not args.domain:
                parser.error("--domain is required for batch")
            orchestrator = BatchOrchestrator(db)
            try:
                summary = await orchestrator.run_batch(args.domain, args.provider, args.concurrency)
            finally:
                await orchestrator.aclose()
            print(json.dumps({k: v for k, v in summary.to_dict().items() if k != "results"}, indent=2))
            return 0 if not summary.pool_fault else 1

        if not args.prompt:
            parser.error("--prompt is required for prompt")
        async with PlatformManager() as platform_manager:
            provider = args.provider or get_run_settings().PROMPT_RUN_DEFAULT_PROVIDER
            platform_manager.ensure_configured(provider)
            executor = PromptExecutor(db, platform_manager)
            try:
                result = await executor.run_one(args.prompt, provider)
            finally:
                await executor.aclose()
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 1
    except PromptRunError as e:
        logger.error("Prompt run rejected", error=e.message, category=e.category.value)
        print(f"error={e.message}")
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
