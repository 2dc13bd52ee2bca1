"""Slug generation for imported notes and archive paths"""

import re


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def unique_slug(text: str, taken: set[str]) -> str:
    """slugify(text), suffixed -2, -3, ... until it is not in taken. Empty input becomes 'untitled'."""
    base = slugify(text) or "untitled"
    slug, n = base, 1
    while slug in taken:
        n += 1
        slug = f"{base}-{n}"
    return slug
