import asyncio
import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class KVStore(Protocol):
    """外部键值存储; shared=True 的数据对所有用户可见"""

    async def list(self, prefix: str, shared: bool = True) -> List[str]: ...

    async def get(self, key: str, shared: bool = True) -> Optional[str]: ...

    async def set(self, key: str, value: str, shared: bool = True) -> None: ...


class JsonKVStore:
    """默认后端: 单个 JSON 文件, 分 shared / private 两个键空间

    每次读写都重新读取文件, 这样同一份文件被多个进程共用时也能看到彼此的写入。
    文件损坏时直接抛出异常, 由上层转换成 LoadError / StorageError。
    """

    def __init__(self, path: Path):
        self.file = Path(path)
        self.file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _space(self, shared: bool) -> str:
        return "shared" if shared else "private"

    def _read(self) -> Dict[str, Dict[str, str]]:
        if not self.file.exists():
            return {"shared": {}, "private": {}}
        data = json.loads(self.file.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.file} 不是合法的键值存储文件")
        data.setdefault("shared", {})
        data.setdefault("private", {})
        return data

    def _write(self, data: Dict[str, Dict[str, str]]):
        tmp = self.file.with_name(self.file.name + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.file)

    async def list(self, prefix: str, shared: bool = True) -> List[str]:
        space = self._read()[self._space(shared)]
        return sorted(k for k in space if k.startswith(prefix))

    async def get(self, key: str, shared: bool = True) -> Optional[str]:
        return self._read()[self._space(shared)].get(key)

    async def set(self, key: str, value: str, shared: bool = True) -> None:
        if not isinstance(value, str):
            raise TypeError("value must be text")
        async with self._lock:
            data = self._read()
            data[self._space(shared)][key] = value
            self._write(data)
