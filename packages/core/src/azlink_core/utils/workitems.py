import re

AB_PATTERN = re.compile(r"AB#([0-9]+)", re.IGNORECASE)


def extract_work_item_ids(text: str | None) -> list[str]:
    """Return the numeric ids of every ``AB#<digits>`` reference in text.

    Ids keep the order of their first occurrence; repeats are dropped.
    """
    seen: dict[str, None] = {}
    for match in AB_PATTERN.finditer(text or ""):
        seen.setdefault(match.group(1), None)
    return list(seen)
