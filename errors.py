from typing import Optional


class QuoteBoardError(Exception):
    """所有语录墙错误的基类, user_message 可以直接回复给用户"""
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class ValidationError(QuoteBoardError):
    pass


class EmptyQuoteError(ValidationError):
    user_message = "Quote text is required"


class InvalidUrlError(ValidationError):
    user_message = "Please provide a valid URL for the origin"

    def __init__(self, url: str):
        super().__init__(f"not an absolute URL: {url!r}")
        self.url = url


class ModerationRejectedError(QuoteBoardError):
    user_message = "Your submission contains inappropriate content. Please revise and try again."

    def __init__(self, category: str):
        super().__init__(f"blocked by moderation category {category!r}")
        self.category = category


class LoadError(QuoteBoardError):
    user_message = "Could not load quotes right now."


class DecodeError(QuoteBoardError):
    def __init__(self, detail: str, key: Optional[str] = None):
        super().__init__(detail)
        self.key = key


class StorageError(QuoteBoardError):
    user_message = "Failed to save quote. Please try again."
