"""Command line entry point: ``tgpic upload`` and ``tgpic dedup``."""

import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import httpx

from tgpic.client.config import ClientConfig, get_config
from tgpic.client.dedup import run_client_dedup
from tgpic.client.uploader.compressor import CompressionAdapter
from tgpic.client.uploader.queue import UploadTaskQueue
from tgpic.client.uploader.task import ExpirePolicy, UploadTask
from tgpic.client.uploader.transport import UploadTransport
from tgpic.utils import tracing

logger = tracing.get_logger("cli")


def _is_image(path: Path) -> bool:
    content_type = mimetypes.guess_type(path.name)[0] or ""
    return content_type.startswith("image/")


def expand_inputs(paths: Iterable[str]) -> List[Path]:
    """Files as given, directories replaced by the image files below them."""
    files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            for child in sorted(p for p in path.rglob("*") if p.is_file()):
                if _is_image(child):
                    files.append(child)
                else:
                    logger.info("Skipping non-image file", extra={"path": str(child)})
        elif path.is_file():
            files.append(path)
        else:
            logger.warning("Input not found", extra={"path": raw})
    return files


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tgpic", description="Telegram-backed image host client")
    parser.add_argument("--server", help="Server base URL (overrides TGPIC_SERVER__URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload files or directories of images")
    upload.add_argument("paths", nargs="+")
    upload.add_argument("--folder", default="/")
    upload.add_argument("--tag", action="append", dest="tags", default=[])
    upload.add_argument("--expire", choices=[p.value for p in ExpirePolicy], default=ExpirePolicy.FOREVER.value)
    upload.add_argument("--concurrency", type=int, choices=range(1, 6), metavar="{1..5}")
    upload.add_argument("--no-compress", action="store_true")

    dedup = sub.add_parser("dedup", help="Remove duplicate images from the catalog")
    dedup.add_argument("--ids", type=int, nargs="+")
    dedup.add_argument("--client-side", action="store_true", help="Hash locally instead of on the server")
    dedup.add_argument("--groups", action="store_true", help="Print the duplicate groups")
    return parser


async def _upload(args: argparse.Namespace, config: ClientConfig) -> int:
    files = expand_inputs(args.paths)
    if not files:
        print("No files to upload", file=sys.stderr)
        return 1

    upload_cfg = config.upload
    tags = args.tags or [upload_cfg.default_tag]
    compressor = None
    if upload_cfg.compress and not args.no_compress:
        compressor = CompressionAdapter(
            max_dimension=upload_cfg.max_dimension,
            quality_start=upload_cfg.quality_start,
            quality_floor=upload_cfg.quality_floor,
            quality_step=upload_cfg.quality_step,
        )

    def report(task: UploadTask) -> None:
        if task.duplicate_of:
            print(f"= {task.name} (duplicate)")
        elif task.error:
            print(f"✗ {task.name}: {task.error}")
        else:
            print(f"✓ {task.name} -> {(task.result or {}).get('short_code')}")

    async with UploadTransport(
        config.server.api_base,
        timeout=config.server.timeout,
        max_attempts=upload_cfg.max_attempts,
    ) as transport:
        queue = UploadTaskQueue(
            transport,
            compressor=compressor,
            max_bytes=upload_cfg.max_bytes,
            chunk_size=upload_cfg.chunk_size,
            on_task_done=report,
        )
        for path in files:
            queue.add(UploadTask.from_path(path, tags=tags, folder=args.folder, expire=args.expire))
        result = await queue.run(args.concurrency or upload_cfg.concurrency)

    print(f"{len(result.uploaded)} uploaded, {len(result.duplicates)} duplicates, {len(result.failed)} failed")
    return 1 if result.failed else 0


async def _dedup(args: argparse.Namespace, config: ClientConfig) -> int:
    api_base = config.server.api_base
    if args.client_side:
        result = await run_client_dedup(
            api_base,
            ids=args.ids,
            concurrency=config.dedup.concurrency,
            page_size=config.dedup.page_size,
        )
        print(json.dumps(result.to_dict(include_groups=args.groups), ensure_ascii=False, indent=2))
        return 0

    body = {"include_groups": args.groups}
    if args.ids:
        body["ids"] = args.ids
    async with httpx.AsyncClient(timeout=None) as client:
        resp = await client.post(f"{api_base}/dedup", json=body)
    print(json.dumps(resp.json(), ensure_ascii=False, indent=2))
    return 0 if resp.is_success else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = get_config()
    if args.server:
        config.server.url = args.server
    tracing.setup_logging(config.log_level)

    if args.command == "upload":
        return asyncio.run(_upload(args, config))
    return asyncio.run(_dedup(args, config))


if __name__ == "__main__":
    sys.exit(main())
