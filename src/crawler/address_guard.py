"""
Address guard for user-supplied import URLs.

Rejects URLs that would make the server fetch from its own network
(server-side request forgery) before any browser work starts.

Checks, in order:
- Non-empty string input
- Parsable URL with http/https scheme
- Non-empty hostname
- Hostname outside loopback, private, and link-local address space

The URL is split the way a browser splits it (backslashes act as slashes
and Unicode full stops map to ASCII) and the check is made on the literal
hostname. Names are not resolved and redirects taken during
navigation are not re-validated.
"""

import ipaddress
import re
from typing import Any

from src.importer.errors import (
    REASON_DISALLOWED_PROTOCOL,
    REASON_EMPTY,
    REASON_INVALID_FORMAT,
    REASON_MISSING_HOSTNAME,
    REASON_PRIVATE_ADDRESS,
)
from src.importer.schemas import ValidationResult
from src.utils.logging import get_logger, truncate_url

logger = get_logger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})

LOCAL_HOSTNAMES = frozenset({"localhost", "localhost.localdomain"})

PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
    )
)

IPV6_LOCAL_LITERALS = frozenset({"::1", "::"})

# Coarse prefix match standing in for fc00::/7
IPV6_PRIVATE_PREFIXES = ("fc", "fd")

_SCHEME_PATTERN = re.compile(r"([A-Za-z][A-Za-z0-9+.\-]*):")

# Removed anywhere in the input by browsers before parsing
_STRIPPED_CHARS = re.compile(r"[\t\n\r]")

_AUTHORITY_END = re.compile(r"[/?#]")

_FORBIDDEN_HOST_CHARS = re.compile(r"[\s<>\"\\^`{|}%/@\[\]]")


def is_private_hostname(hostname: str) -> bool:
    """Check whether a hostname falls in private/local address space.

    Args:
        hostname: Hostname as it appears in the URL (IPv6 may be bracketed).

    Returns:
        True if the hostname is a local alias or a private/loopback literal.
    """
    name = hostname.rstrip(".")
    if name in LOCAL_HOSTNAMES or name.endswith(".localhost"):
        return True

    try:
        address = ipaddress.IPv4Address(hostname)
    except ValueError:
        address = None
    if address is not None and any(address in net for net in PRIVATE_IPV4_NETWORKS):
        return True

    ipv6_hostname = hostname.removeprefix("[").removesuffix("]")
    if ipv6_hostname in IPV6_LOCAL_LITERALS:
        return True
    # Only IPv6 literals; DNS names such as fdic.gov stay public
    if ":" in ipv6_hostname and ipv6_hostname.startswith(IPV6_PRIVATE_PREFIXES):
        return True

    return False


def _parse_ipv4_part(part: str) -> int | None:
    if part[:2] in ("0x", "0X"):
        digits, base = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, base = part[1:], 8
    else:
        digits, base = part, 10
    if digits == "":
        return 0 if base == 16 else None
    try:
        return int(digits, base)
    except ValueError:
        return None


def _canonical_ipv4(hostname: str) -> str | None:
    """Normalize numeric host forms (``2130706433``, ``0x7f.1``) to dotted quads.

    Browsers resolve these shorthand forms to IPv4 addresses while parsing,
    so they must be compared in canonical form.

    Returns:
        Dotted-quad string, or None if the hostname is not an IPv4 form.

    Raises:
        ValueError: If the hostname is numeric but out of IPv4 range.
    """
    parts = hostname.split(".")
    if parts and parts[-1] == "" and len(parts) > 1:
        parts = parts[:-1]
    if not parts or len(parts) > 4:
        return None

    numbers = [_parse_ipv4_part(p) for p in parts]
    if any(n is None for n in numbers):
        return None

    head, last = numbers[:-1], numbers[-1]
    if any(n > 255 for n in head) or last >= 256 ** (5 - len(numbers)):
        raise ValueError("IPv4 address out of range")

    value = last
    for index, n in enumerate(head):
        value += n * 256 ** (3 - index)
    return str(ipaddress.IPv4Address(value))


def _check_port(port: str) -> None:
    if port and (not port.isascii() or not port.isdigit() or int(port) > 65535):
        raise ValueError(f"invalid port: {port!r}")


def _idna_ascii(hostname: str) -> str:
    """Map a Unicode hostname to ASCII (ideographic full stops, fullwidth digits)."""
    if hostname.isascii():
        return hostname
    # UnicodeError is a ValueError; unmappable hosts are an invalid format
    return hostname.encode("idna").decode("ascii")


def _extract_hostname(url: str) -> tuple[str, str]:
    """Split a URL into (scheme, canonical hostname) the way a browser does.

    For http/https the authority ends at the first ``/``, ``\\``, ``?`` or
    ``#``, and backslashes count as slashes, so ``http://127.0.0.1\\@x.com/``
    targets 127.0.0.1. Other schemes are returned with an empty hostname.

    Raises:
        ValueError: If the URL cannot be parsed as an absolute URL.
    """
    url = _STRIPPED_CHARS.sub("", url.strip())
    match = _SCHEME_PATTERN.match(url)
    if match is None:
        raise ValueError("missing scheme")

    scheme = match.group(1).lower()
    if scheme not in ALLOWED_SCHEMES:
        return scheme, ""

    rest = url[match.end():].replace("\\", "/").lstrip("/")
    authority = _AUTHORITY_END.split(rest, maxsplit=1)[0]
    host_port = authority.rpartition("@")[2]

    if host_port.startswith("["):
        end = host_port.find("]")
        if end == -1:
            raise ValueError("unterminated IPv6 literal")
        tail = host_port[end + 1:]
        if tail and not tail.startswith(":"):
            raise ValueError("junk after IPv6 literal")
        _check_port(tail[1:])
        address = ipaddress.IPv6Address(host_port[1:end])
        return scheme, f"[{address.compressed}]"

    hostname, _, port = host_port.partition(":")
    _check_port(port)

    hostname = _idna_ascii(hostname).lower()
    if _FORBIDDEN_HOST_CHARS.search(hostname):
        raise ValueError("forbidden host code point")

    return scheme, _canonical_ipv4(hostname) or hostname


class AddressGuard:
    """Validates import URLs before any network access.

    Pure: no I/O, no state. Safe to share between concurrent requests.
    """

    def validate(self, url: Any) -> ValidationResult:
        """Validate a candidate URL.

        Args:
            url: Raw user input. Anything other than a non-blank string
                 is rejected as empty.

        Returns:
            ValidationResult with the rejection reason when invalid.
        """
        if not isinstance(url, str) or not url.strip():
            return ValidationResult.reject(REASON_EMPTY)

        try:
            scheme, hostname = _extract_hostname(url)
        except ValueError:
            return ValidationResult.reject(REASON_INVALID_FORMAT)

        if scheme not in ALLOWED_SCHEMES:
            return ValidationResult.reject(REASON_DISALLOWED_PROTOCOL)

        if not hostname:
            return ValidationResult.reject(REASON_MISSING_HOSTNAME)

        if is_private_hostname(hostname):
            logger.info(
                "Private address rejected",
                url=truncate_url(url),
                hostname=hostname,
            )
            return ValidationResult.reject(REASON_PRIVATE_ADDRESS)

        return ValidationResult.accept()


_address_guard: AddressGuard | None = None


def get_address_guard() -> AddressGuard:
    """Get or create the global AddressGuard instance."""
    global _address_guard
    if _address_guard is None:
        _address_guard = AddressGuard()
    return _address_guard


def validate_url(url: Any) -> ValidationResult:
    """Validate a URL with the global guard."""
    return get_address_guard().validate(url)
