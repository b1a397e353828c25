"""语录记录的编解码

存储里每条语录是一段 JSON 文本, 字段名沿用已有数据:
{"id", "quote", "context", "origin", "extraInfo", "timestamp"}
"""
import json
import secrets
import time
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import urlsplit

from .errors import DecodeError, EmptyQuoteError, InvalidUrlError
from .model import QUOTE_KEY_PREFIX, QuoteForm, QuoteRecord

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_SUFFIX_LEN = 9  # 36^9 ≈ 2^46


def new_quote_id(millis: int) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_SUFFIX_LEN))
    return f"{QUOTE_KEY_PREFIX}{millis}-{suffix}"


def is_absolute_url(text: str) -> bool:
    """必须同时有 scheme 和 authority, 相对路径一律不算"""
    try:
        parts = urlsplit(text)
    except ValueError:
        return False
    if not parts.scheme or not parts.netloc:
        return False
    if any(ch.isspace() for ch in text):
        return False
    try:
        parts.port  # 非法端口会在这里抛 ValueError
    except ValueError:
        return False
    return True


def normalize(form: QuoteForm, clock: Callable[[], float] = time.time) -> QuoteRecord:
    """把表单输入清洗成一条新记录, 失败时抛 ValidationError 子类"""
    quote_text = form.quote.strip()
    if not quote_text:
        raise EmptyQuoteError()

    origin = form.origin.strip()
    if origin and not is_absolute_url(origin):
        raise InvalidUrlError(origin)

    millis = int(clock() * 1000)
    return QuoteRecord(
        id=new_quote_id(millis),
        quote_text=quote_text,
        context=form.context.strip(),
        origin_url=origin,
        extra_info=form.extra_info.strip(),
        created_at_millis=millis,
    )


def moderation_text(item: Union[QuoteForm, QuoteRecord]) -> str:
    """审核时三段文本拼在一起检查, 任何一段违规都会拦下整条投稿"""
    if isinstance(item, QuoteRecord):
        parts = (item.quote_text, item.context, item.extra_info)
    else:
        parts = (item.quote, item.context, item.extra_info)
    return " ".join(parts)


def to_dict(record: QuoteRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "quote": record.quote_text,
        "context": record.context,
        "origin": record.origin_url,
        "extraInfo": record.extra_info,
        "timestamp": record.created_at_millis,
    }


def encode(record: QuoteRecord) -> str:
    return json.dumps(to_dict(record), ensure_ascii=False)


def _optional_text(data: Dict[str, Any], field: str, key: Optional[str]) -> str:
    value = data.get(field, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"field {field!r} is not a string", key)
    return value


def decode(blob: Optional[str], key: Optional[str] = None) -> QuoteRecord:
    """encode 的逆操作; 数据损坏时抛 DecodeError, 由调用方决定跳过"""
    if not isinstance(blob, str):
        raise DecodeError("value is missing or not text", key)
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}", key) from e
    if not isinstance(data, dict):
        raise DecodeError("value is not a JSON object", key)

    qid = data.get("id")
    if not isinstance(qid, str) or not qid.startswith(QUOTE_KEY_PREFIX):
        raise DecodeError("missing or foreign id", key)
    if key is not None and qid != key:
        raise DecodeError(f"id {qid!r} does not match key", key)

    quote_text = data.get("quote")
    if not isinstance(quote_text, str) or not quote_text.strip():
        raise DecodeError("missing quote text", key)

    timestamp = data.get("timestamp")
    if isinstance(timestamp, float) and timestamp.is_integer():
        timestamp = int(timestamp)
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise DecodeError("timestamp is not an integer", key)

    return QuoteRecord(
        id=qid,
        quote_text=quote_text,
        context=_optional_text(data, "context", key),
        origin_url=_optional_text(data, "origin", key),
        extra_info=_optional_text(data, "extraInfo", key),
        created_at_millis=timestamp,
    )
