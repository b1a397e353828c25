"""内容审核: 纯函数式的关键词/正则分类

规则是数据不是逻辑, 默认规则在 moderation_rules.json, 插件配置里还可以追加
"类别: 正则" 形式的规则行, 不需要改代码。
"""
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from astrbot.api import logger

from .errors import ModerationRejectedError

DEFAULT_RULES_PATH = Path(__file__).parent / "moderation_rules.json"
# 规则按 ASCII 词边界匹配, 这样紧挨着中文的英文词也能命中 \b
RULE_FLAGS = re.IGNORECASE | re.ASCII


@dataclass(frozen=True)
class ModerationRule:
    category: str
    pattern: str


@dataclass(frozen=True)
class ModerationResult:
    accepted: bool
    category: Optional[str] = None
    matched: Optional[str] = None


def load_rules(path: Optional[Path] = None) -> List[ModerationRule]:
    """从 JSON 文件读取规则, 格式: {"rules": [{"category": .., "pattern": ..}]}"""
    path = Path(path) if path else DEFAULT_RULES_PATH
    data = json.loads(path.read_text(encoding="utf-8"))
    rules = []
    for item in data.get("rules", []):
        category = str(item.get("category") or "").strip()
        pattern = item.get("pattern")
        if not category or not isinstance(pattern, str) or not pattern:
            logger.warning(f"忽略格式错误的审核规则: {item!r}")
            continue
        rules.append(ModerationRule(category, pattern))
    return rules


def parse_rule_lines(lines: Iterable[str]) -> List[ModerationRule]:
    """解析配置里的 "category: regex" 行"""
    rules = []
    for line in lines or []:
        category, sep, pattern = str(line).partition(":")
        category, pattern = category.strip(), pattern.strip()
        if not sep or not category or not pattern:
            logger.warning(f"忽略格式错误的审核规则: {line!r}")
            continue
        rules.append(ModerationRule(category, pattern))
    return rules


class ContentModerator:
    def __init__(self, rules: Iterable[ModerationRule]):
        self._compiled = []
        for rule in rules:
            try:
                self._compiled.append((rule.category, re.compile(rule.pattern, RULE_FLAGS)))
            except re.error as e:
                logger.warning(f"审核规则正则无效, 已跳过 [{rule.category}] {rule.pattern!r}: {e}")

    @property
    def categories(self) -> List[str]:
        seen = []
        for category, _ in self._compiled:
            if category not in seen:
                seen.append(category)
        return seen

    def classify(self, text: str) -> ModerationResult:
        """按顺序检查, 命中任意一条即拒绝 (不做局部替换)"""
        for category, regex in self._compiled:
            m = regex.search(text or "")
            if m:
                return ModerationResult(False, category, m.group(0))
        return ModerationResult(True)

    def check(self, text: str):
        result = self.classify(text)
        if not result.accepted:
            raise ModerationRejectedError(result.category)
