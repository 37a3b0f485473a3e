ELLIPSIS = "…"


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.split())


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1].rstrip() + ELLIPSIS
