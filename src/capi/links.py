"""Link scheme normalization.

The Cloud Controller only advertises https links. This client runs behind a
forwarding proxy (HTTP_PROXY) that terminates and re-establishes TLS, so every
address it follows is rewritten to plain http and handed to the proxy.
"""

SECURE_SCHEME = "https"
INSECURE_SCHEME = "http"

_SECURE_PREFIX = SECURE_SCHEME + "://"
_INSECURE_PREFIX = INSECURE_SCHEME + "://"


def normalize_link(href: str | None) -> str:
    """Rewrite an https URL to http, leaving everything after the scheme intact.

    Only the scheme component is replaced, so an "https" appearing in the path
    or query is left alone. Scheme matching is case-insensitive like URL
    schemes themselves. Non-https values (including "" and None) pass
    through, with None becoming "".

    Example:
        >>> normalize_link("https://api.example.com/v3/tasks?next=https")
        'http://api.example.com/v3/tasks?next=https'
    """
    if not href:
        return ""
    if href[: len(_SECURE_PREFIX)].lower() == _SECURE_PREFIX:
        return _INSECURE_PREFIX + href[len(_SECURE_PREFIX) :]
    return href
