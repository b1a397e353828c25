from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional

from astrbot.api.event import filter, AstrMessageEvent
from astrbot.api.star import Context, Star, register
from astrbot.api import logger

# 导入分层模块
from .dao import JsonKVStore
from .moderation import ContentModerator, load_rules, parse_rule_lines
from .renderer import QuoteRenderer
from .repository import QuoteRepository
from .session import QuoteBoardSession, parse_quote_args

PLUGIN_NAME = "quote_board"
DEFAULT_MAX_SESSIONS = 200

@register("astrbot_plugin_quote_board", "jengaklll-a11y", "语录墙", "1.0.0", "多人共享的语录墙: 投稿、浏览、搜索, 投稿前自动内容审核")
class QuoteBoardPlugin(Star):
    def __init__(self, context: Context, config: Dict = None):
        super().__init__(context)
        self.config = config or {}
        self.data_dir = Path(f"data/plugin_data/{PLUGIN_NAME}")
        store_file = self.config.get("store_file") or str(self.data_dir / "kv_store.json")
        self.store = JsonKVStore(Path(store_file))
        self.repository = QuoteRepository(self.store, concurrency=self.config.get("load_concurrency", 8))
        self.moderator = self._build_moderator()
        self.max_sessions = max(1, int(self.config.get("max_sessions", DEFAULT_MAX_SESSIONS)))
        # 按最近使用排序, 超出上限时丢掉最久没用的会话缓存
        self._sessions: "OrderedDict[str, QuoteBoardSession]" = OrderedDict()

    def _build_moderator(self) -> ContentModerator:
        rules_file = self.config.get("moderation_rules_file") or None
        try:
            rules = load_rules(Path(rules_file) if rules_file else None)
        except (OSError, ValueError) as e:
            # 自定义规则文件读不了就退回内置规则, 审核不能因此失效
            logger.error(f"读取审核规则失败 {rules_file}: {e}, 改用内置规则")
            rules = load_rules()
        rules += parse_rule_lines(self.config.get("extra_moderation_rules", []))
        return ContentModerator(rules)

    # ================= 1. 指令注册 =================

    @filter.command("quote_add", alias={"添加语录"})
    async def cmd_add(self, event: AstrMessageEvent):
        """投稿: 语录 | 出处 | 链接 | 补充说明"""
        session = await self._get_session(event)
        form = parse_quote_args(self._command_args(event))
        if form.is_blank() and not session.form.is_blank():
            # 空参数时重试上一次失败时保留的表单
            form = None
        outcome = await session.submit(form)
        if outcome.committed:
            yield event.plain_result("已收录:\n" + QuoteRenderer.render_quote(outcome.record))
        else:
            yield event.plain_result(outcome.message)

    @filter.command("quotes", alias={"语录列表"})
    async def cmd_list(self, event: AstrMessageEvent):
        """浏览/搜索语录"""
        session = await self._get_session(event)
        session.set_search(self._command_args(event).strip())
        yield event.plain_result(self._render_board(session))

    @filter.command("quote_show", alias={"查看语录"})
    async def cmd_show(self, event: AstrMessageEvent):
        """展开/收起一条语录的详情"""
        session = await self._get_session(event)
        arg = self._command_args(event).strip()
        quote_id = self._resolve_quote_id(session, arg)
        if not quote_id:
            yield event.plain_result("没有找到这条语录, 请先用 /quotes 查看序号。")
            return
        record = session.toggle(quote_id)
        if record is None:
            yield event.plain_result("已收起。")
            return
        visible = session.visible()
        index = next((i + 1 for i, q in enumerate(visible) if q.id == record.id), None)
        yield event.plain_result(QuoteRenderer.render_quote(record, index, expanded=True))

    @filter.command("quote_reload", alias={"刷新语录"})
    async def cmd_reload(self, event: AstrMessageEvent):
        """重新从存储加载"""
        session = await self._get_session(event, reload=True)
        yield event.plain_result(self._render_board(session))

    @filter.command("quote_help", alias={"语录帮助"})
    async def cmd_help(self, event: AstrMessageEvent):
        yield event.plain_result(QuoteRenderer.render_help())

    # ================= 2. 工具方法 =================

    async def _get_session(self, event: AstrMessageEvent, reload: bool = False) -> QuoteBoardSession:
        key = str(event.unified_msg_origin)
        session = self._sessions.get(key)
        if session is None:
            session = QuoteBoardSession(self.repository, self.moderator)
            self._sessions[key] = session
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug(f"语录会话缓存已满, 丢弃 {evicted}")
        else:
            self._sessions.move_to_end(key)
        if reload or not session.loaded:
            await session.load()
        return session

    def _render_board(self, session: QuoteBoardSession) -> str:
        visible = session.visible()
        if not visible:
            return session.empty_message()
        footer = ""
        if self.config.get("show_skipped_count", True) and session.skipped_keys:
            footer = f"(有 {len(session.skipped_keys)} 条语录数据损坏, 已跳过)"
        return QuoteRenderer.render_list(
            visible, session.selected_id, self.config.get("page_size", 10), footer
        )

    def _command_args(self, event: AstrMessageEvent) -> str:
        """去掉指令本身, 剩下的就是参数"""
        parts = (event.message_str or "").strip().split(maxsplit=1)
        return parts[1] if len(parts) > 1 else ""

    def _resolve_quote_id(self, session: QuoteBoardSession, arg: str) -> Optional[str]:
        if not arg:
            return None
        if arg.isdigit():
            visible = session.visible()
            idx = int(arg)
            if 1 <= idx <= len(visible):
                return visible[idx - 1].id
            return None
        if any(q.id == arg for q in session.quotes):
            return arg
        return None
