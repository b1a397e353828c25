"""会话级的视图控制器

每个聊天会话持有自己的语录缓存、搜索词、展开状态和投稿表单。
投稿流程是一个显式的状态机:
EDITING -> VALIDATING -> MODERATING -> PERSISTING -> COMMITTED
任何失败 (REJECTED / BLOCKED / FAILED) 都回到 EDITING, 并保留用户输入。
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from astrbot.api import logger

from .codec import moderation_text, normalize
from .errors import LoadError, ModerationRejectedError, StorageError, ValidationError
from .model import QuoteForm, QuoteRecord
from .moderation import ContentModerator
from .query import filter_quotes
from .repository import QuoteRepository

EMPTY_BOARD = "No quotes yet. Be the first to add one!"
NO_MATCH = "No quotes found matching your search."


class SubmissionState(Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    REJECTED = "rejected"
    MODERATING = "moderating"
    BLOCKED = "blocked"
    PERSISTING = "persisting"
    FAILED = "failed"
    COMMITTED = "committed"


@dataclass
class SubmissionOutcome:
    state: SubmissionState
    message: str = ""
    record: Optional[QuoteRecord] = None

    @property
    def committed(self) -> bool:
        return self.state is SubmissionState.COMMITTED


def parse_quote_args(text: str) -> QuoteForm:
    """聊天里的表单输入: 语录 | 出处 | 链接 | 补充说明"""
    parts = (text or "").split("|", 3)
    parts += [""] * (4 - len(parts))
    return QuoteForm(quote=parts[0], context=parts[1], origin=parts[2], extra_info=parts[3])


class QuoteBoardSession:
    def __init__(
        self,
        repository: QuoteRepository,
        moderator: ContentModerator,
        clock: Callable[[], float] = time.time,
    ):
        self.repository = repository
        self.moderator = moderator
        self.clock = clock

        self.quotes: List[QuoteRecord] = []
        self.loaded = False
        self.loading = False
        self.load_error = ""
        self.skipped_keys: List[str] = []  # 本会话最近一次加载跳过的损坏 key
        self.search_term = ""
        self.selected_id: Optional[str] = None

        self.form = QuoteForm()
        self.state = SubmissionState.EDITING
        self.error = ""
        self.transitions: List[Tuple[SubmissionState, SubmissionState]] = []

        self._lock = asyncio.Lock()

    # ================= 加载与浏览 =================

    async def load(self) -> List[QuoteRecord]:
        """重新拉取全部语录; 失败时保留旧缓存, 只设置 load_error"""
        async with self._lock:
            self.loading = True
            try:
                report = await self.repository.load_report()
            except LoadError as e:
                self.load_error = e.user_message
                return self.quotes
            finally:
                self.loading = False
            # 拉取完整结束后才整体替换, 中途取消不会留下半个列表
            quotes = report.records
            self.quotes = quotes
            self.skipped_keys = report.skipped
            self.loaded = True
            self.load_error = ""
            if self.selected_id and not any(q.id == self.selected_id for q in quotes):
                self.selected_id = None
            return self.quotes

    def set_search(self, term: Optional[str]):
        self.search_term = term or ""

    def visible(self) -> List[QuoteRecord]:
        return filter_quotes(self.quotes, self.search_term)

    def toggle(self, quote_id: str) -> Optional[QuoteRecord]:
        """展开/收起一条语录的详情, 返回当前展开的记录"""
        if self.selected_id == quote_id:
            self.selected_id = None
            return None
        for q in self.quotes:
            if q.id == quote_id:
                self.selected_id = quote_id
                return q
        return None

    def selected(self) -> Optional[QuoteRecord]:
        if not self.selected_id:
            return None
        return next((q for q in self.quotes if q.id == self.selected_id), None)

    def empty_message(self) -> str:
        if self.load_error and not self.quotes:
            return self.load_error
        return NO_MATCH if self.search_term else EMPTY_BOARD

    # ================= 投稿状态机 =================

    def _move(self, new_state: SubmissionState):
        self.transitions.append((self.state, new_state))
        logger.debug(f"投稿状态 {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _fail(self, terminal: SubmissionState, message: str) -> SubmissionOutcome:
        self._move(terminal)
        self.error = message
        self._move(SubmissionState.EDITING)
        return SubmissionOutcome(terminal, message)

    async def submit(self, form: Optional[QuoteForm] = None) -> SubmissionOutcome:
        """提交表单; 不会自动重试, 失败时表单原样保留"""
        async with self._lock:
            if form is not None:
                self.form = form
            if self.state is not SubmissionState.EDITING:
                self._move(SubmissionState.EDITING)
            self.error = ""

            self._move(SubmissionState.VALIDATING)
            try:
                record = normalize(self.form, clock=self.clock)
            except ValidationError as e:
                return self._fail(SubmissionState.REJECTED, e.user_message)

            self._move(SubmissionState.MODERATING)
            try:
                self.moderator.check(moderation_text(record))
            except ModerationRejectedError as e:
                logger.info(f"投稿被内容审核拦截 (类别: {e.category})")
                return self._fail(SubmissionState.BLOCKED, e.user_message)

            self._move(SubmissionState.PERSISTING)
            try:
                await self.repository.submit(record)
            except StorageError as e:
                return self._fail(SubmissionState.FAILED, e.user_message)
            except asyncio.CancelledError:
                self._move(SubmissionState.EDITING)
                raise

            # 新记录一定是最新的, 直接放到最前面
            self.quotes = [record] + self.quotes
            self.form = QuoteForm()
            self._move(SubmissionState.COMMITTED)
            return SubmissionOutcome(SubmissionState.COMMITTED, "", record)
