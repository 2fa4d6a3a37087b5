"""
Link extraction from email bodies
"""
import html
import re
from typing import List, Optional
from urllib.parse import urlparse

from .schema import ExtractedLink

_DOMAIN = r'[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*'
_PORT = r'(?::[0-9]{1,5})?'
_PATH = r'(?:/[^\s<>"{}|\\^`\[\]]*)?'

PROTOCOL_URL_PATTERN = re.compile(rf'(?:https?://|ftp://){_DOMAIN}{_PORT}{_PATH}', re.IGNORECASE)
# Bare domains such as www.example.com; not preceded by "@" so addresses are skipped
DOMAIN_ONLY_PATTERN = re.compile(rf'(?<![@\w.-])(?:www\.)?{_DOMAIN}\.[a-zA-Z]{{2,}}{_PORT}{_PATH}\b', re.IGNORECASE)
ANCHOR_PATTERN = re.compile(r'<a\s[^>]*?href\s*=\s*["\']([^"\']+)["\'][^>]*>(.*?)</a>', re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r'<[^>]+>')

_TRAILING_PUNCTUATION = '.,;:!?)\'"'


def _make_link(url: str, text: str) -> ExtractedLink:
    normalized = url
    if not re.match(r'^(?:https?|ftp)://', url, re.IGNORECASE):
        normalized = 'https://' + url
    domain = urlparse(normalized).hostname or 'invalid-url'
    return ExtractedLink(url=normalized, text=text, domain=domain)


def extract_links_from_text(text: str) -> List[ExtractedLink]:
    """Find http(s)/ftp URLs and bare domains in plain text"""
    if not text:
        return []

    found = [match.rstrip(_TRAILING_PUNCTUATION) for match in PROTOCOL_URL_PATTERN.findall(text)]
    for match in DOMAIN_ONLY_PATTERN.findall(text):
        match = match.rstrip(_TRAILING_PUNCTUATION)
        if not any(match in url for url in found):
            found.append(match)

    return [_make_link(url, url) for url in found]


def extract_links_from_html(markup: str) -> List[ExtractedLink]:
    """Collect absolute http(s) anchors from an HTML body"""
    if not markup:
        return []

    links = []
    for href, inner in ANCHOR_PATTERN.findall(markup):
        href = html.unescape(href.strip())
        if not href.lower().startswith(('http://', 'https://')):
            continue
        text = html.unescape(TAG_PATTERN.sub('', inner)).strip()
        links.append(_make_link(href, text or href))
    return links


def extract_links(body: Optional[str], html_body: Optional[str] = None) -> List[ExtractedLink]:
    """Links from the HTML body when present, otherwise from the plain text, without duplicates"""
    links = extract_links_from_html(html_body or '') or extract_links_from_text(body or '')
    unique = []
    seen = set()
    for link in links:
        if link.url not in seen:
            seen.add(link.url)
            unique.append(link)
    return unique
