"""语录仓库: 在扁平的键值存储上拼出一个有序、可容错的语录集合

存储本身没有查询接口, 只能 "先列出 key, 再逐个读取"。这层把这个过程封装起来,
以后换成支持原生查询的存储时调用方不用改。
"""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from astrbot.api import logger

from .codec import decode, encode
from .dao import KVStore
from .errors import DecodeError, LoadError, StorageError
from .model import QUOTE_KEY_PREFIX, QuoteRecord


@dataclass
class LoadReport:
    records: List[QuoteRecord]
    skipped: List[str] = field(default_factory=list)  # 读取失败或数据损坏的 key


class QuoteRepository:
    def __init__(self, store: KVStore, prefix: str = QUOTE_KEY_PREFIX, concurrency: int = 8):
        self.store = store
        self.prefix = prefix
        self._semaphore = asyncio.Semaphore(max(1, int(concurrency)))
        self.skipped_total = 0

    async def _fetch(self, key: str) -> Optional[QuoteRecord]:
        """读取并解码单条, 任何失败都只记录日志并返回 None"""
        async with self._semaphore:
            try:
                raw = await self.store.get(key, shared=True)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"读取语录失败, 已跳过 {key}: {e}")
                return None
        if raw is None:
            logger.debug(f"Quote not found: {key}")
            return None
        try:
            return decode(raw, key)
        except DecodeError as e:
            logger.warning(f"语录数据损坏, 已跳过 {key}: {e}")
            return None

    async def load_report(self) -> LoadReport:
        """列出命名空间下的全部语录, 按时间倒序 (新的在前), 同时带回被跳过的 key

        只有列 key 这一步失败才会抛 LoadError; 单条失败会被跳过。
        """
        try:
            keys = await self.store.list(self.prefix, shared=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"列出语录失败: {e}")
            raise LoadError(str(e)) from e

        keys = list(dict.fromkeys(k for k in (keys or []) if isinstance(k, str) and k.startswith(self.prefix)))
        if not keys:
            return LoadReport([], [])

        results = await asyncio.gather(*(self._fetch(k) for k in keys))

        records = [r for r in results if r is not None]
        skipped = [k for k, r in zip(keys, results) if r is None]
        if skipped:
            self.skipped_total += len(skipped)
            logger.warning(f"本次加载跳过 {len(skipped)}/{len(keys)} 条语录")

        records.sort(key=lambda r: (r.created_at_millis, r.id), reverse=True)
        return LoadReport(records, skipped)

    async def load_all(self) -> List[QuoteRecord]:
        return (await self.load_report()).records

    async def submit(self, record: QuoteRecord):
        """写入一条新语录, 失败抛 StorageError, 不做任何自动重试"""
        try:
            await self.store.set(record.id, encode(record), shared=True)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"保存语录失败 {record.id}: {e}")
            raise StorageError(str(e)) from e
