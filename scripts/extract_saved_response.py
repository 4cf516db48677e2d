#!/usr/bin/env python3
"""
从保存下来的 X 接口 JSON 响应中提取媒体，可选直接下载。

用途：
- 排查提取结果（某条推文为什么没有媒体 / 引用推文归属是否正确）
- 离线复现：浏览器 DevTools 里 "Copy response" 保存为文件后直接喂给提取器

示例（在仓库根目录执行）：
  python3 -m scripts.extract_saved_response samples/home_timeline.json
  python3 -m scripts.extract_saved_response samples/tweet_detail.json --record-id 1782199752874246406
  python3 -m scripts.extract_saved_response samples/tweet_detail.json --record-id 1782199752874246406 --download

下载行为与 WebUI 一致：多图打包为 zip，视频/GIF 单独保存，同名文件自动加 " (n)" 后缀。
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from src.backend.cache.media_cache import MediaCache
from src.backend.downloader.dispatcher import DownloadDispatcher
from src.backend.downloader.sink import BlobStore, LocalDownloadSink
from src.backend.fs.storage import DownloadStorage
from src.backend.net.fetch import MediaFetcher
from src.backend.net.proxy import ProxyConfig
from src.backend.net.retry import RetryConfig
from src.backend.pipeline.session import MediaSession
from src.shared.validators.x_status_url import parse_status_url


def build_session(args: argparse.Namespace) -> MediaSession:
    proxy = ProxyConfig(enabled=bool(args.proxy.strip()), url=args.proxy.strip())
    fetcher = MediaFetcher(
        timeout_s=args.timeout_s,
        retry=RetryConfig(max_retries=args.download_retries),
        proxy=proxy,
    )
    blobs = BlobStore()
    sink = LocalDownloadSink(DownloadStorage(Path(args.out_dir)), fetch=fetcher.fetch_async, blobs=blobs)
    # Blobs are only read by the local sink; nothing to keep alive after submit.
    dispatcher = DownloadDispatcher(sink=sink, fetch=fetcher.fetch_async, blobs=blobs, release_delay_s=0)
    return MediaSession(dispatcher=dispatcher, cache=MediaCache())


async def run(args: argparse.Namespace) -> int:
    session = build_session(args)

    for path in args.files:
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            print(f"读取失败：{path}：{exc}", file=sys.stderr)
            return 2
        result = session.ingest_response(raw)
        if result.extracted == 0:
            print(f"{path}：未提取到媒体（非 JSON 或无媒体推文）", file=sys.stderr)

    if args.record_id:
        parsed = parse_status_url(args.record_id)
        if not parsed.valid or parsed.record_id is None:
            print(f"--record-id 无效：{parsed.error}", file=sys.stderr)
            return 2
        items = session.cache.query_by_record(parsed.record_id)
    else:
        items = session.cache.snapshot()

    if args.json:
        print(json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2))
    else:
        for item in items:
            quoted = f"  (quoted by {item.referenced_by})" if item.referenced_by else ""
            print(f"{item.kind.value:5s}  {item.display_name}  {item.source_url}{quoted}")
        print(f"共 {len(items)} 个媒体")

    if not args.download or not items:
        return 0 if items else 1

    report = await session.download_items(items)
    for download in report.downloads + ([report.archive] if report.archive else []):
        target = download.file_path or download.error
        print(f"[{download.status.value}] {download.filename} -> {target}")
    return 0 if report.failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="extract_saved_response",
        description="从保存的 X 接口 JSON 响应中提取（并下载）媒体",
    )
    p.add_argument("files", nargs="+", help="保存的 JSON 响应文件（可多个，按顺序合并）")
    p.add_argument("--record-id", default="", help="只输出该推文（id 或 status 链接）的媒体，含其引用推文")
    p.add_argument("--json", action="store_true", help="以 JSON 输出提取结果")

    p.add_argument("--download", action="store_true", help="下载提取到的媒体")
    p.add_argument("--out-dir", default="downloads", help="下载输出目录（默认 downloads）")
    p.add_argument("--timeout-s", type=float, default=30.0, help="单次下载超时秒数（默认 30）")
    p.add_argument("--download-retries", type=int, default=2, help="下载重试次数（默认 2）")
    p.add_argument("--proxy", default="", help="可选代理（例如 http://127.0.0.1:7890）")
    p.add_argument("-v", "--verbose", action="store_true", help="输出 debug 日志")
    return p


def main() -> int:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
