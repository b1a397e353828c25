from dataclasses import dataclass

QUOTE_KEY_PREFIX = "quote:"


@dataclass(frozen=True)
class QuoteRecord:
    id: str                  # 同时也是存储 key, 形如 quote:<毫秒>-<随机串>
    quote_text: str
    context: str
    origin_url: str
    extra_info: str
    created_at_millis: int   # 唯一排序键 (新的在前)


@dataclass
class QuoteForm:
    """用户正在编辑的投稿 (未校验的原始输入)"""
    quote: str = ""
    context: str = ""
    origin: str = ""
    extra_info: str = ""

    def is_blank(self) -> bool:
        return not any(v.strip() for v in (self.quote, self.context, self.origin, self.extra_info))
