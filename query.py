from typing import Iterable, List, Optional

from .model import QuoteRecord


def filter_quotes(quotes: Iterable[QuoteRecord], term: Optional[str]) -> List[QuoteRecord]:
    """按正文或出处做不区分大小写的子串匹配, 返回新列表, 不修改原集合"""
    if not term:
        return list(quotes)
    needle = term.lower()
    return [q for q in quotes if needle in q.quote_text.lower() or needle in q.context.lower()]
