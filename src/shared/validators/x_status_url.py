"""
X (Twitter) 推文链接解析：从 status URL 或纯数字中提取 record id。

支持：
- https://x.com/<handle>/status/<id>
- https://twitter.com/<handle>/status/<id>（含 www. / mobile.）
- 末尾的 /photo/<n>、/video/<n>、/analytics 等附加路径
- https://x.com/i/web/status/<id>
- 纯数字 id
非法输入返回可理解的错误原因。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class StatusUrlResult:
    """推文链接解析结果"""

    valid: bool
    record_id: Optional[str] = None
    handle: Optional[str] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


ALLOWED_HOSTS = frozenset(
    {
        "x.com",
        "www.x.com",
        "mobile.x.com",
        "twitter.com",
        "www.twitter.com",
        "mobile.twitter.com",
    }
)

HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,15}$")
RECORD_ID_PATTERN = re.compile(r"^\d{1,25}$")


def parse_status_url(value: str) -> StatusUrlResult:
    """
    解析推文链接或纯数字 id。

    Args:
        value: 推文 URL 或 record id

    Returns:
        StatusUrlResult: 成功时包含 record_id（以及 URL 中的 handle），失败时包含 error
    """
    if not value or not value.strip():
        return StatusUrlResult(valid=False, error="链接不能为空")

    raw = value.strip()

    if RECORD_ID_PATTERN.match(raw):
        return StatusUrlResult(valid=True, record_id=raw)

    try:
        parsed = urlparse(raw)
    except ValueError:
        return StatusUrlResult(valid=False, error="URL 格式无效")

    if parsed.scheme not in ("http", "https"):
        return StatusUrlResult(valid=False, error="URL 缺少协议或协议不支持，应为 https://x.com/<handle>/status/<id>")

    host = parsed.netloc.lower()
    if host not in ALLOWED_HOSTS:
        return StatusUrlResult(valid=False, error=f"域名必须是 x.com 或 twitter.com（当前为 {parsed.netloc}）")

    segments = [s for s in parsed.path.split("/") if s]

    # /i/web/status/<id>
    if len(segments) >= 4 and segments[:3] == ["i", "web", "status"]:
        record_id = segments[3]
        if not RECORD_ID_PATTERN.match(record_id):
            return StatusUrlResult(valid=False, error=f"推文 id 必须是数字（当前为 {record_id}）")
        return StatusUrlResult(valid=True, record_id=record_id)

    if len(segments) < 3 or segments[1] != "status":
        return StatusUrlResult(valid=False, error="不是推文链接，应为 https://x.com/<handle>/status/<id>")

    handle, record_id = segments[0], segments[2]
    if not HANDLE_PATTERN.match(handle):
        return StatusUrlResult(valid=False, error=f"用户名格式无效：{handle}（仅允许字母、数字、下划线，长度 1-15）")
    if not RECORD_ID_PATTERN.match(record_id):
        return StatusUrlResult(valid=False, error=f"推文 id 必须是数字（当前为 {record_id}）")

    return StatusUrlResult(valid=True, record_id=record_id, handle=handle)
