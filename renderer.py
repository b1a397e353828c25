from datetime import datetime
from typing import List, Optional

from .model import QuoteRecord


class QuoteRenderer:
    """视图层: 只负责把记录排成文本, 不碰任何状态"""

    @staticmethod
    def format_date(millis: int) -> str:
        try:
            return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d")
        except (OverflowError, OSError, ValueError):
            return ""

    @staticmethod
    def render_quote(q: QuoteRecord, index: Optional[int] = None, expanded: bool = False) -> str:
        head = f"#{index} " if index is not None else ""
        lines = [f"{head}「{q.quote_text}」"]
        if q.context:
            lines.append(f"—— {q.context}")
        if expanded:
            if q.extra_info:
                lines.append(f"Extra Information: {q.extra_info}")
            if q.origin_url:
                lines.append(f"Origin: {q.origin_url}")
            lines.append(f"ID: {q.id}")
        date_text = QuoteRenderer.format_date(q.created_at_millis)
        if date_text:
            lines.append(date_text)
        return "\n".join(lines)

    @staticmethod
    def render_list(
        quotes: List[QuoteRecord],
        selected_id: Optional[str] = None,
        limit: int = 10,
        footer: str = "",
    ) -> str:
        shown = quotes[:max(1, limit)]
        blocks = [
            QuoteRenderer.render_quote(q, i + 1, expanded=(q.id == selected_id))
            for i, q in enumerate(shown)
        ]
        if len(quotes) > len(shown):
            blocks.append(f"…共 {len(quotes)} 条, 仅显示前 {len(shown)} 条")
        if footer:
            blocks.append(footer)
        return "\n\n".join(blocks)

    @staticmethod
    def render_help() -> str:
        return "\n".join([
            "/quote_add 语录 | 出处 | 链接 | 补充说明   投稿 (只有语录必填)",
            "/quotes [关键词]   浏览或搜索语录",
            "/quote_show <序号或ID>   展开/收起详情",
            "/quote_reload   重新加载",
            "",
            "All quotes are publicly visible and stored using shared storage.",
            "Inappropriate content will be rejected automatically.",
        ])
