"""Deterministic, hash-based PII redaction for event-log style records.

Processing flow for a record:
1. Copy the record; non-string values and safe metadata fields pass through.
2. Structured username / computer-name fields are replaced as a whole.
3. Every other string field is scanned as free text, in this order:
   a. the local host name (before generic computer-name matching, so the
      host never ends up with two tokens);
   b. values already present in the mapping;
   c. user-profile paths, emails, DOMAIN\\name accounts, IPv6 and IPv4
      addresses, UNC host names, hostname-shaped words.
4. Text already replaced by a token is never scanned again.

Tokens look like ``[ANON_USER_1A2B3C]``: the first 6 hex digits of the
SHA-256 of the normalized value. The same value always yields the same
token, across engines and restarts, with or without a restored mapping.
"""

from __future__ import annotations

import hashlib
import ipaddress
import re
import socket
import threading
import unicodedata
from collections.abc import Callable, Iterable, Mapping
from typing import Any, ClassVar

from sysmcp.anonymization.base import BaseAnonymizer
from sysmcp.anonymization.models import SYSTEM_PROFILES, AnonymizationMapping, Category
from sysmcp.logging.logger import Log

_Replacer = Callable[[str], str]
_KnownValues = tuple[re.Pattern[str] | None, dict[str, str]]


class PiiAnonymizer(BaseAnonymizer):
    """Stateful redactor holding one AnonymizationMapping.

    One instance per process; pass it to every collaborator that redacts.
    Token insertion is serialized with a lock, lookups are not.
    """

    TOKEN_HEX_WIDTH: ClassVar[int] = 6

    # Never scanned: enum values, provider metadata, identifiers.
    SAFE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "logName",
            "levelDisplayName",
            "level",
            "providerName",
            "source",
            "eventId",
            "id",
            "timeCreated",
            "timestamp",
        }
    )
    USERNAME_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"userId", "username", "userName", "user", "author"}
    )
    COMPUTER_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"computerName", "computername", "machineName", "host", "hostname"}
    )

    # Well-known principals that carry no individual identity.
    EXEMPT_PRINCIPALS: ClassVar[frozenset[str]] = frozenset(
        {
            "system",
            "local service",
            "network service",
            "anonymous logon",
            "nt authority\\system",
            "nt authority\\local service",
            "nt authority\\network service",
            "nt authority\\anonymous logon",
            "n/a",
            "-",
        }
    )
    EXEMPT_DOMAINS: ClassVar[frozenset[str]] = frozenset(
        {"nt authority", "nt service", "builtin", "window manager", "font driver host"}
    )

    COMPUTER_NAME_EXCLUSIONS: ClassVar[frozenset[str]] = frozenset(
        {
            "INFORMATION", "WARNING", "ERROR", "CRITICAL", "VERBOSE", "DEBUG",
            "INFO", "WARN", "FATAL", "TRACE", "AUDIT",
            "SYSTEM", "APPLICATION", "SECURITY", "SETUP",
            "TRUE", "FALSE", "NULL", "NONE", "UNKNOWN",
            "THE", "AND", "FOR", "NOT", "ALL", "ARE", "BUT", "WAS",
            "SUCCESS", "FAILURE", "FAILED", "STARTED", "STOPPED", "RUNNING",
            "GET", "SET", "PUT", "POST", "DELETE", "PATCH",
            "TCP", "UDP", "HTTP", "HTTPS", "DNS", "DHCP", "RPC", "COM",
            "SYSTEM32", "SYSWOW64", "WIN32", "WIN64", "X64", "X86", "ARM64",
            "UTF-8", "UTF-16", "UTF-32", "MD5", "SHA-1", "SHA-256", "SHA-512",
            "AES-128", "AES-256", "TLS1", "IPV4", "IPV6", "HTTP2", "HTTP3",
            "COM1", "COM2", "COM3", "COM4", "LPT1", "LPT2", "LPT3", "NTLM",
            "NTLMV2", "KERBEROS", "GUID", "UUID", "ID",
        }
    )

    _TOKEN_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(\[?ANON_(?:USER|COMPUTER|IP|EMAIL|PATH)_[0-9A-Fa-f]+\]?)"
    )
    _EMAIL_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w.%+-])[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}(?![\w-])"
    )
    _EMAIL_VALUE_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}"
    )
    _DOMAIN_USER_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w.\\/:$-])"
        r"(?P<domain>(?:NT )?[A-Za-z0-9][A-Za-z0-9._-]*)"
        r"\\"
        r"(?P<name>[A-Za-z0-9_$-](?:[A-Za-z0-9._$-]*[A-Za-z0-9_$-])?)"
        r"(?![\w\\$-])"
    )
    _PROFILE_PATH_RE: ClassVar[re.Pattern[str]] = re.compile(
        # Names followed by "\" may contain spaces; a trailing name ends at whitespace.
        r"(?P<prefix>(?:\b[A-Za-z]:)?\\Users\\)"
        r"(?P<name>[^\\/:*?\"<>|\s]+(?: [^\\/:*?\"<>|\s]+){0,3}(?=\\)|[^\\/:*?\"<>|\s]+)",
        re.IGNORECASE,
    )
    _UNIX_HOME_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?P<prefix>(?<![\w.])/home/)(?P<name>[A-Za-z0-9._-]+)"
    )
    _IPV4_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w.])"
        r"(?:(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}"
        r"(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)"
        r"(?!\w|\.\d)"
    )
    _IPV6_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w:])"
        r"(?=[0-9A-Fa-f:]*:[0-9A-Fa-f:]*:)"
        r"[0-9A-Fa-f:]{2,39}"
        r"(?:(?<=:)\d{1,3}(?:\.\d{1,3}){3})?"
        r"(?![\w:]|\.\d)"
    )
    _VERSION_PREFIX_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?:\b(?:version|ver\.?|build|release|rev\.?|v)\s*[:=]?\s*)$", re.IGNORECASE
    )
    _UNC_HOST_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w\\])\\\\(?P<host>[A-Za-z0-9][A-Za-z0-9-]*(?:\.[A-Za-z0-9-]+)*)(?=\\)"
    )
    _COMPUTER_NAME_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![\w-])[A-Z][A-Z0-9-]{1,13}[A-Z0-9](?![\w-])"
    )
    _KB_ARTICLE_RE: ClassVar[re.Pattern[str]] = re.compile(r"KB\d+")

    # Seeded categories are matched in this precedence when texts collide.
    _KNOWN_VALUE_ORDER: ClassVar[tuple[Category, ...]] = (
        Category.COMPUTER,
        Category.USER,
        Category.EMAIL,
        Category.IP,
        Category.PATH,
    )
    _MIN_KNOWN_VALUE_LENGTH: ClassVar[int] = 3

    def __init__(
        self,
        mapping: AnonymizationMapping | None = None,
        local_hostname: str | None = None,
    ) -> None:
        self._mapping = mapping.copy() if mapping is not None else AnonymizationMapping()
        self._lock = threading.Lock()
        self._index: dict[Category, dict[str, str]] = {category: {} for category in Category}
        for category in Category:
            for original, token in self._mapping.table(category).items():
                self._index[category].setdefault(self._normalize(category, original), token)
        # (mapping size, pattern, casefolded value -> token); replaced as a whole.
        self._known_values: tuple[int, re.Pattern[str] | None, dict[str, str]] = (-1, None, {})

        self._local_identity = self._detect_local_identity(local_hostname)
        self._local_identity_re: re.Pattern[str] | None = None
        if self._local_identity:
            self._local_identity_re = re.compile(
                r"(?<![\w-])" + re.escape(self._local_identity) + r"(?![\w-])",
                re.IGNORECASE,
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def local_identity(self) -> str:
        """Uppercase host name of this machine, computed at construction."""
        return self._local_identity

    def mapping(self) -> AnonymizationMapping:
        return self._mapping

    def redact(self, record: Mapping[str, Any] | None) -> dict[str, Any] | None:
        if record is None:
            return None
        if not isinstance(record, Mapping):
            Log.warning(f"Skipping redaction of non-mapping record ({type(record).__name__})")
            return record  # type: ignore[return-value]

        result = dict(record)
        text_fields: list[str] = []
        # Structured fields first so their values are known when scanning text.
        for key, value in result.items():
            if not isinstance(value, str) or not value or key in self.SAFE_FIELDS:
                continue
            if key in self.USERNAME_FIELDS:
                result[key] = self._guarded(key, value, self.redact_username)
            elif key in self.COMPUTER_FIELDS:
                result[key] = self._guarded(key, value, self.redact_computer_name)
            else:
                text_fields.append(key)
        if text_fields:
            # One known-value pattern per record.
            known = self._known_values_pattern()
            for key in text_fields:
                result[key] = self._guarded(
                    key, result[key], lambda text: self._redact_free_text(text, known)
                )
        return result

    def redact_many(self, records: Iterable[Mapping[str, Any]]) -> list[dict[str, Any] | None]:
        """Redact every record; see :meth:`redact`."""
        redacted = [self.redact(record) for record in records]
        Log.debug(f"Redacted {len(redacted)} records ({self._mapping.total_entries()} mapped values)")
        return redacted

    def redact_text(self, text: str | None) -> str | None:
        """Redact a single free-text value."""
        if not text:
            return text
        try:
            return self._redact_free_text(text)
        except Exception as exc:  # noqa: BLE001
            Log.warning(f"Free text left unredacted: {type(exc).__name__}")
            return text

    def redact_username(self, value: str | None) -> str | None:
        """Replace a whole account value with its token.

        Well-known principals are kept; email-shaped logins use the EMAIL
        category so they match the same address seen in free text.
        """
        if not value or not value.strip():
            return value
        if self._is_token(value) or self._is_exempt_principal(value):
            return value
        if self._EMAIL_VALUE_RE.fullmatch(value.strip()):
            return self.tokenize(Category.EMAIL, value.strip())
        return self.tokenize(Category.USER, value.strip())

    def redact_profile_name(self, value: str | None) -> str | None:
        """Replace the <name> of a <drive>:\\Users\\<name> profile directory.

        Always uses the USER category, even for email-shaped directory names.
        Shared profiles such as Public and Default are kept.
        """
        if not value or not value.strip():
            return value
        if self._is_token(value) or value.strip().casefold() in SYSTEM_PROFILES:
            return value
        return self.tokenize(Category.USER, value.strip())

    def redact_computer_name(self, value: str | None) -> str | None:
        """Replace a whole host value with its token; the local host keeps one token."""
        if not value or not value.strip():
            return value
        if self._is_token(value):
            return value
        host = value.strip()
        if self._local_identity and host.split(".")[0].upper() == self._local_identity:
            return self.tokenize(Category.COMPUTER, self._local_identity)
        return self.tokenize(Category.COMPUTER, host)

    def tokenize(self, category: Category, original: str) -> str:
        """Return the token for *original*, creating and recording it if new."""
        normalized = self._normalize(category, original)
        index = self._index[category]
        token = index.get(normalized)
        if token is not None:
            return token
        with self._lock:
            token = index.get(normalized)
            if token is None:
                token = self._make_token(category, normalized)
                index[normalized] = token
                self._mapping.table(category).setdefault(original, token)
        return token

    # ------------------------------------------------------------------
    # Field dispatch
    # ------------------------------------------------------------------

    def _guarded(self, key: str, value: str, redactor: Callable[[str], str | None]) -> str:
        try:
            return redactor(value) or value
        except Exception as exc:  # noqa: BLE001 - redaction must never raise
            Log.warning(f"Field '{key}' left unredacted: {type(exc).__name__}")
            return value

    def _redact_free_text(self, text: str, known: _KnownValues | None = None) -> str:
        if known is None:
            known = self._known_values_pattern()
        pattern, tokens = known
        steps: list[_Replacer] = [
            self._replace_local_identity,
            lambda segment: self._replace_known_values(segment, pattern, tokens),
            self._replace_profile_paths,
            self._replace_emails,
            self._replace_domain_users,
            self._replace_ipv6,
            self._replace_ipv4,
            self._replace_unc_hosts,
            self._replace_computer_names,
        ]
        for step in steps:
            text = self._outside_tokens(text, step)
        return text

    def _outside_tokens(self, text: str, replacer: _Replacer) -> str:
        """Apply *replacer* only to the parts of *text* that are not tokens."""
        parts = self._TOKEN_RE.split(text)
        for i in range(0, len(parts), 2):
            if parts[i]:
                parts[i] = replacer(parts[i])
        return "".join(parts)

    # ------------------------------------------------------------------
    # Free-text detectors
    # ------------------------------------------------------------------

    def _replace_local_identity(self, text: str) -> str:
        if self._local_identity_re is None:
            return text
        return self._local_identity_re.sub(
            lambda _m: self.tokenize(Category.COMPUTER, self._local_identity), text
        )

    def _replace_known_values(
        self, text: str, pattern: re.Pattern[str] | None, tokens: dict[str, str]
    ) -> str:
        if pattern is None:
            return text
        return pattern.sub(lambda m: tokens.get(m.group(0).casefold(), m.group(0)), text)

    def _replace_profile_paths(self, text: str) -> str:
        def replace(m: re.Match[str]) -> str:
            name = m.group("name").rstrip(".,;)]'\"")
            trailer = m.group("name")[len(name):]
            if not name:
                return m.group(0)
            return m.group("prefix") + (self.redact_profile_name(name) or name) + trailer

        text = self._PROFILE_PATH_RE.sub(replace, text)
        return self._UNIX_HOME_RE.sub(replace, text)

    def _replace_emails(self, text: str) -> str:
        return self._EMAIL_RE.sub(lambda m: self.tokenize(Category.EMAIL, m.group(0)), text)

    def _replace_domain_users(self, text: str) -> str:
        def replace(m: re.Match[str]) -> str:
            value = m.group(0)
            if self._is_exempt_principal(value):
                return value
            before = text[: m.start()]
            if before.endswith(" ") and "\\" in (before.split() or [""])[-1]:
                # "C:\Program Files\MyApp": a path segment, not an account.
                return value
            return self.tokenize(Category.USER, value)

        return self._DOMAIN_USER_RE.sub(replace, text)

    def _replace_ipv6(self, text: str) -> str:
        def replace(m: re.Match[str]) -> str:
            candidate = m.group(0)
            if not any(ch not in ":" for ch in candidate):
                return candidate
            try:
                ipaddress.IPv6Address(candidate)
            except ValueError:
                return candidate
            return self.tokenize(Category.IP, candidate)

        return self._IPV6_RE.sub(replace, text)

    def _replace_ipv4(self, text: str) -> str:
        def replace(m: re.Match[str]) -> str:
            if self._VERSION_PREFIX_RE.search(text, 0, m.start()):
                return m.group(0)
            return self.tokenize(Category.IP, m.group(0))

        return self._IPV4_RE.sub(replace, text)

    def _replace_unc_hosts(self, text: str) -> str:
        return self._UNC_HOST_RE.sub(
            lambda m: "\\\\" + (self.redact_computer_name(m.group("host")) or m.group("host")),
            text,
        )

    def _replace_computer_names(self, text: str) -> str:
        def replace(m: re.Match[str]) -> str:
            word = m.group(0)
            if word in self.COMPUTER_NAME_EXCLUSIONS or self._KB_ARTICLE_RE.fullmatch(word):
                return word
            if not any(ch.isdigit() or ch == "-" for ch in word):
                return word
            return self.tokenize(Category.COMPUTER, word)

        return self._COMPUTER_NAME_RE.sub(replace, text)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _known_values_pattern(self) -> _KnownValues:
        size, pattern, tokens = self._known_values
        if size == self._mapping.total_entries():
            return pattern, tokens
        with self._lock:
            return self._rebuild_known_values()

    def _rebuild_known_values(self) -> _KnownValues:
        size = self._mapping.total_entries()

        tokens: dict[str, str] = {}
        for category in self._KNOWN_VALUE_ORDER:
            for original, token in list(self._mapping.table(category).items()):
                if len(original) < self._MIN_KNOWN_VALUE_LENGTH:
                    continue
                if category is Category.USER and self._is_exempt_principal(original):
                    continue
                tokens.setdefault(original.casefold(), token)

        pattern: re.Pattern[str] | None = None
        if tokens:
            alternatives = sorted(tokens, key=len, reverse=True)
            pattern = re.compile(
                r"(?<![\w.@\\-])(?:"
                + "|".join(re.escape(value) for value in alternatives)
                + r")(?![\w@\\-]|\.\w)",
                re.IGNORECASE,
            )
        self._known_values = (size, pattern, tokens)
        return pattern, tokens

    def _is_token(self, value: str) -> bool:
        return self._TOKEN_RE.fullmatch(value.strip()) is not None

    def _is_exempt_principal(self, value: str) -> bool:
        folded = value.strip().casefold()
        if folded in self.EXEMPT_PRINCIPALS:
            return True
        domain, sep, _name = folded.partition("\\")
        return bool(sep) and domain in self.EXEMPT_DOMAINS

    def _make_token(self, category: Category, normalized: str) -> str:
        digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
        return f"[ANON_{category.value}_{digest[: self.TOKEN_HEX_WIDTH].upper()}]"

    @staticmethod
    def _normalize(category: Category, value: str) -> str:
        value = unicodedata.normalize("NFC", value.strip())
        if category in (Category.USER, Category.COMPUTER):
            return value.casefold()
        if category is Category.IP:
            try:
                return ipaddress.ip_address(value).compressed
            except ValueError:
                return value.lower()
        if category is Category.EMAIL:
            return value.lower()
        return value.replace("/", "\\").rstrip("\\").casefold()

    @staticmethod
    def _detect_local_identity(override: str | None) -> str:
        if override:
            return override.strip().split(".")[0].upper()
        try:
            hostname = socket.gethostname()
        except OSError as exc:
            Log.warning(f"Could not determine local host name: {exc}")
            return ""
        return hostname.strip().split(".")[0].upper()
