#!/usr/bin/env python3
"""
Rewrite relative link and image references in HTML fragments.

Syndicated or cached HTML often carries references that only make sense next
to the page they were lifted from. absolutify() resolves the href of <a> and
the src of <img> against a base URL so the fragment can be republished
anywhere.

The work happens in three steps per tag:
1. scan_tags() splits the document into literal text and tag candidates
2. locate_attribute() finds the target attribute value inside a tag
3. resolve_location() merges that value with the base URL

Anything that cannot be resolved safely is left exactly as it was; the
function never raises on string input.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterator, Optional, Pattern, Tuple
from urllib.parse import quote, urljoin, urlsplit

from config import config, get_logger
from errors import AbsolutifyError, BaseURLError, InvalidReferenceError
from telemetry import current_span, trace_span

# Module-specific logger
logger = get_logger("absolutify")

# "<", one non-whitespace character, anything but ">", optional "/", then ">".
# A ">" inside a quoted attribute value ends the match early.
TAG_PATTERN = re.compile(r'<\S[^>]*/?>')
ELEMENT_NAME_PATTERN = re.compile(r'<(\S+)')

# Quoted values run to the matching quote; bare values to whitespace or the tag end
VALUE_PATTERN = re.compile(
    r'''(?P<quote>["'])(?P<quoted>[^>]+?)(?P=quote)'''
    r'''|(?P<bare>[^\s>"'][^\s>]*?)(?=\s|/?>|\Z)'''
)

# RFC 3986 unreserved, reserved and percent-encoded characters
URI_CHARACTERS = re.compile(r"(?:[A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=]|%[0-9A-Fa-f]{2})+")

# Characters left alone when percent-encoding the base URL
BASE_URL_SAFE = "!#$%&'()*+,/:;=?@[]~"


@dataclass(frozen=True)
class AttributeMatch:
    """A tag split around the value of its target attribute.

    ``prefix + value + suffix`` always reproduces the original tag.
    """
    prefix: str
    value: str
    suffix: str

    def replace(self, value: str) -> str:
        return self.prefix + value + self.suffix


@dataclass(frozen=True)
class BaseURI:
    """A parsed, percent-encoded base URL used for every merge in one call."""
    url: str
    scheme: str
    netloc: str
    path: str
    query: str
    fragment: str

    @classmethod
    def parse(cls, base_url: Optional[str]) -> "BaseURI":
        """Encode and parse a base URL.

        Characters outside the URI grammar (quotes, spaces, non-ASCII) are
        percent-encoded first, so ``http://example.org/f"oo/`` becomes
        ``http://example.org/f%22oo/``.

        Raises:
            BaseURLError: if the URL is empty, malformed or has no scheme.
        """
        if not base_url or not base_url.strip():
            raise BaseURLError(base_url, "empty base URL")
        encoded = quote(base_url.strip(), safe=BASE_URL_SAFE)
        try:
            parts = urlsplit(encoded)
        except ValueError as e:
            raise BaseURLError(base_url, str(e)) from e
        if not parts.scheme:
            raise BaseURLError(base_url, "base URL is not absolute")
        return cls(encoded, parts.scheme, parts.netloc, parts.path, parts.query, parts.fragment)

    def merge(self, reference: str) -> str:
        """Resolve a relative reference against this base (RFC 3986 section 5)."""
        return urljoin(self.url, reference)


def scan_tags(html: str) -> Iterator[Tuple[str, bool]]:
    """Yield ``(text, is_tag)`` segments covering ``html`` in document order.

    Literal segments are yielded untouched; every call starts a fresh scan.
    """
    position = 0
    for match in TAG_PATTERN.finditer(html):
        if match.start() > position:
            yield html[position:match.start()], False
        yield match.group(0), True
        position = match.end()
    if position < len(html):
        yield html[position:], False


def element_name(tag: str) -> Optional[str]:
    """Return the lowercased element name of a tag, or None for end tags.

    The name is the whole non-whitespace run after ``<`` minus a closing
    ``>`` or ``/>``, so ``<img/src="a.png">`` is not an img element.
    """
    match = ELEMENT_NAME_PATTERN.match(tag)
    if not match or match.group(1).startswith('/'):
        return None
    name = match.group(1)
    if name.endswith('/>'):
        name = name[:-2]
    elif name.endswith('>'):
        name = name[:-1]
    return name.lower()


@lru_cache(maxsize=None)
def attribute_matcher(attribute: str) -> Pattern:
    """Compiled ``name = `` matcher for an attribute, built once per name."""
    return re.compile(rf'{re.escape(attribute)}\s*=\s*', re.IGNORECASE)


def _split_value(tag: str, start: int) -> Optional[AttributeMatch]:
    match = VALUE_PATTERN.match(tag, start)
    if not match:
        return None
    group = 'quoted' if match.group('quote') else 'bare'
    return AttributeMatch(
        prefix=tag[:match.start(group)],
        value=match.group(group),
        suffix=tag[match.end(group):],
    )


def locate_attribute(tag: str, attribute: str) -> Optional[AttributeMatch]:
    """Find the value of ``attribute`` inside ``tag``.

    When the attribute is assigned more than once, the right-most assignment
    wins. Earlier assignments are only considered when a later one has no
    usable value (e.g. an empty or unterminated quoted value).

    Args:
        tag: Complete tag text, e.g. ``<img class="x" src='a.png'>``
        attribute: Attribute name, matched case-insensitively

    Returns:
        The AttributeMatch, or None when the attribute is not assigned.
    """
    candidates = list(attribute_matcher(attribute).finditer(tag))
    for candidate in reversed(candidates):
        match = _split_value(tag, candidate.end())
        if match is not None:
            return match
    return None


def parse_reference(value: str):
    """Split a raw attribute value into URI components.

    Raises:
        InvalidReferenceError: if the value is not an RFC 3986 URI reference.
    """
    if not value or not URI_CHARACTERS.fullmatch(value):
        raise InvalidReferenceError(value, "characters outside the URI grammar")
    if value.count('#') > 1:
        raise InvalidReferenceError(value, "more than one fragment delimiter")
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise InvalidReferenceError(value, str(e)) from e
    if any(c in part for part in (parts.path, parts.query, parts.fragment) for c in '[]'):
        raise InvalidReferenceError(value, "brackets outside the authority")
    if not parts.scheme and not value.startswith('//') and ':' in parts.path.split('/', 1)[0]:
        raise InvalidReferenceError(value, "colon in the first segment of a relative path")
    return parts


def resolve_location(value: str, base: Optional[BaseURI]) -> str:
    """Turn an attribute value into an absolute URL.

    - no scheme: merged with the base
    - scheme without authority (``http:/img/a.png?x#y``): path, query and
      fragment are merged with the base, taking its scheme and authority
    - authority present, or an opaque reference such as ``mailto:``:
      returned unchanged

    Raises:
        InvalidReferenceError: if the value cannot be parsed.
        BaseURLError: if a merge is needed but there is no usable base.
    """
    parts = parse_reference(value)
    if parts.scheme:
        remainder = value[len(parts.scheme) + 1:]
        if remainder.startswith('//'):
            return value
        if remainder and remainder[0] not in '/?#':
            return value
        reference = remainder
    else:
        reference = value
    if base is None:
        raise BaseURLError(None, "no usable base URL to merge with")
    return base.merge(reference)


def rewrite_tag(tag: str, base: Optional[BaseURI], targets: Dict[str, str]) -> str:
    """Return ``tag`` with its target attribute resolved, or unchanged."""
    name = element_name(tag)
    attribute = targets.get(name) if name else None
    if not attribute:
        return tag
    match = locate_attribute(tag, attribute)
    if match is None:
        return tag
    try:
        location = resolve_location(match.value, base)
    except AbsolutifyError as e:
        logger.debug(f"Leaving <{name}> {attribute} unchanged: {e}")
        return tag
    return match.replace(location)


@trace_span(
    "absolutify",
    tracer_name="absolutify",
    attr_from_args=lambda html, base_url, *args, **kwargs: {
        "html.length": len(html) if isinstance(html, str) else 0,
        "base_url": base_url if isinstance(base_url, str) else "",
    },
)
def absolutify(html: str, base_url: str, targets: Optional[Dict[str, str]] = None) -> str:
    """Rewrite relative href/src references in ``html`` against ``base_url``.

    Args:
        html: HTML fragment; only target attribute values are ever changed
        base_url: Absolute URL the fragment was published at
        targets: Optional element -> attribute mapping, defaults to
                 config.TARGET_ATTRIBUTES (``a -> href``, ``img -> src``)

    Returns:
        The rewritten fragment. Tags that cannot be resolved are kept as-is.
    """
    if not html:
        return html if isinstance(html, str) else ""
    if targets is None:
        targets = config.TARGET_ATTRIBUTES
    else:
        targets = {element.lower(): attribute for element, attribute in targets.items()}

    try:
        base = BaseURI.parse(base_url)
    except BaseURLError as e:
        logger.warning(f"Unusable base URL, relative references are left unchanged: {e}")
        base = None

    output = []
    tags = rewritten = 0
    for text, is_tag in scan_tags(html):
        if is_tag:
            tags += 1
            new_text = rewrite_tag(text, base, targets)
            if new_text != text:
                rewritten += 1
            text = new_text
        output.append(text)

    logger.debug(f"Rewrote {rewritten} of {tags} tags against {base_url}")
    span = current_span()
    span.set_attribute("absolutify.tags", tags)
    span.set_attribute("absolutify.rewritten", rewritten)
    return "".join(output)


__all__ = [
    "AttributeMatch",
    "BaseURI",
    "absolutify",
    "attribute_matcher",
    "element_name",
    "locate_attribute",
    "parse_reference",
    "resolve_location",
    "rewrite_tag",
    "scan_tags",
]
