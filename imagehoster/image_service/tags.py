"""
    Conversion between the comma separated tag strings users type and Tag records.

    Tag names cannot contain commas; there is no escaping.
"""
from typing import Callable, Iterable, List, Optional

from imagehoster.image_service.models import Tag

SEPARATOR = ","

def split_tag_names(tag_string: Optional[str]) -> List[str]:
    """Returns the trimmed, non-empty, distinct names in input order."""
    names = []
    for token in (tag_string or "").split(SEPARATOR):
        name = token.strip()
        if name and name not in names:
            names.append(name)
    return names

def normalize(
    tag_string: Optional[str],
    lookup_by_name: Callable[[str], Optional[Tag]],
    create_tag: Callable[[str], Tag],
) -> List[Tag]:
    """
        Resolves a tag string to Tag records, creating the ones not known yet.

        "red, blue,,red" resolves to [red, blue]: empty tokens are skipped and
        a name repeated in the same string is only associated once.
    """
    tags = []
    for name in split_tag_names(tag_string):
        tag = lookup_by_name(name)
        if tag is None:
            tag = create_tag(name)
        tags.append(tag)
    return tags

def stringify(tags: Iterable[Tag]) -> str:
    """Joins tag names back into the form `normalize` accepts."""
    return SEPARATOR.join(tag.name for tag in tags)
