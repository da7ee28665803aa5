from kolagent.services.errors import ContentTooLong
from kolagent.services.types import FormattedPost

POST_CHAR_LIMIT = 280
SEPARATOR = "\n\n"


def normalize_hashtag(tag: str) -> str:
    """Strip leading '#' characters and whitespace, then prepend exactly one '#'."""
    bare = tag.strip().lstrip("#").strip()
    if not bare:
        raise ValueError(f"Hashtag is empty after normalization: {tag!r}")
    return f"#{bare}"


def post_length(text: str, hashtag: str) -> int:
    return len(text) + len(SEPARATOR) + len(hashtag)


def format_post(text: str, tag: str, limit: int = POST_CHAR_LIMIT) -> FormattedPost:
    """
    Compose message, blank line and a single hashtag.

    Raises:
        ContentTooLong: message + 2 + hashtag exceeds limit
        ValueError: tag has no content
    """
    hashtag = normalize_hashtag(tag)
    length = post_length(text, hashtag)
    if length > limit:
        raise ContentTooLong(length, limit)
    return FormattedPost(text=f"{text}{SEPARATOR}{hashtag}", hashtag=hashtag)
