"""
Publisher name resolution.

Maps a feed URL to a human-readable publisher name using a static domain
table. Pure functions only, so the table can be tested exhaustively.
"""

from typing import List, Mapping, Tuple
from urllib.parse import urlparse

UNKNOWN_SOURCE = "Άγνωστη πηγή"

DOMAIN_SOURCE_MAP: Mapping[str, str] = {
    "newsit.gr": "NewsIT",
    "protothema.gr": "Πρώτο Θέμα",
    "in.gr": "In.gr",
    "ethnos.gr": "Εθνος",
    "tanea.gr": "Τα Νέα",
    "naftemporiki.gr": "Ναυτεμπορική",
    "tovima.gr": "Το Βήμα",
    "gr.euronews.com": "Euronews",
    "euronews.com": "Euronews",
    "dw.com": "DW",
    "bbci.co.uk": "BBC News",
    "reuters.com": "Reuters",
    "gazzetta.gr": "Gazzetta",
    "sdna.gr": "SDNA",
    "sport24.gr": "Sport24",
    "olaprasina1908.gr": "Όλα Πράσινα",
    "trifilara.gr": "Trifilara",
    "panathinaikos24.gr": "Panathinaikos24",
    "insomnia.gr": "Insomnia",
    "techgear.gr": "Techgear",
    "digitallife.gr": "Digital Life",
    "pcmag.com": "PC Magazine",
}


def _host_of(url: str) -> str:
    host = urlparse(url).hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return host


def _is_label_suffix(longer: str, shorter: str) -> bool:
    return longer.endswith("." + shorter)


def resolve_source_name(url: str, domains: Mapping[str, str] = DOMAIN_SOURCE_MAP) -> str:
    """
    Returns the canonical publisher name for a feed URL.

    Exact host match wins; otherwise the first table key that is a
    label-boundary suffix of the host (subdomain) or has the host as its
    suffix (apex alias). Unknown hosts fall back to their second-to-last
    label, capitalized.
    """
    try:
        host = _host_of(url)
    except (ValueError, TypeError, AttributeError):
        return UNKNOWN_SOURCE
    if not host:
        return UNKNOWN_SOURCE

    if host in domains:
        return domains[host]

    for key, name in domains.items():
        if _is_label_suffix(host, key) or _is_label_suffix(key, host):
            return name

    labels = [label for label in host.split(".") if label]
    if not labels:
        return UNKNOWN_SOURCE
    label = labels[-2] if len(labels) >= 2 else labels[0]
    return label[:1].upper() + label[1:]


def find_ambiguous_domains(
    domains: Mapping[str, str] = DOMAIN_SOURCE_MAP,
) -> List[Tuple[str, str]]:
    """Lists key pairs that overlap on a label boundary but map to different names."""
    keys = list(domains)
    ambiguous = []
    for i, first in enumerate(keys):
        for second in keys[i + 1 :]:
            overlapping = _is_label_suffix(first, second) or _is_label_suffix(
                second, first
            )
            if overlapping and domains[first] != domains[second]:
                ambiguous.append((first, second))
    return ambiguous
