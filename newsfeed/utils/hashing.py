import hashlib


def sha1_text(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def item_guid(source: str, link: str) -> str:
    return f"{source}:{link}"
