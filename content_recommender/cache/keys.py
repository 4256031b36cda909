"""
Cache key layout shared by the engine, the models and the content service.
"""

_GLOB_SPECIAL = "\\*?[]"

ALL_RECOMMENDATIONS_PATTERN = "recommendations:user:*"
POPULARITY_PATTERN = "popular:content:*"
CONTENT_LISTS_PATTERN = "contents:*"
NEW_INTERACTIONS_COUNTER = "interactions:new_count"


def escape_pattern(value: str) -> str:
    """Escape Redis glob metacharacters so an identifier matches literally."""
    return "".join(f"\\{c}" if c in _GLOB_SPECIAL else c for c in str(value))


def recommendations_key(user_id: str, limit: int) -> str:
    return f"recommendations:user:{user_id}:{limit}"


def user_recommendations_pattern(user_id: str) -> str:
    return f"recommendations:user:{escape_pattern(user_id)}:*"


def embedding_key(content_id: str) -> str:
    return f"embedding:content:{content_id}"


def popularity_key(limit: int) -> str:
    return f"popular:content:{limit}"


def content_key(content_id: str) -> str:
    return f"content:{content_id}"


def content_list_key(limit: int) -> str:
    return f"contents:recent:{limit}"


def nudge_key(interaction_id: str) -> str:
    return f"nudge:interaction:{interaction_id}"
