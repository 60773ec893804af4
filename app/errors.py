from typing import Dict, List


class ArticleError(Exception):
    """Base class for article service errors."""
    pass


class ArticleNotFoundError(ArticleError):
    def __init__(self, article_id: int):
        super().__init__(f"No news article with id {article_id}")
        self.article_id = article_id


class ArticleValidationError(ArticleError):
    """Field-level rule violations, keyed by field name."""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__(f"Invalid fields: {', '.join(sorted(errors))}")
        self.errors = errors


class ArticleWriteError(ArticleError):
    """A multi-step write failed and was rolled back."""
    pass
