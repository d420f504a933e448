from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    """PII category; the value is the token label."""

    USER = "USER"
    COMPUTER = "COMPUTER"
    IP = "IP"
    EMAIL = "EMAIL"
    PATH = "PATH"


# Profile directories under <drive>:\Users that belong to no individual.
SYSTEM_PROFILES: frozenset[str] = frozenset(
    {"public", "default", "default user", "all users"}
)


@dataclass
class AnonymizationMapping:
    """Original value -> token, one table per PII category.

    Keys are the original values as first seen. Entries are only ever added.
    """

    usernames: dict[str, str] = field(default_factory=dict)
    computer_names: dict[str, str] = field(default_factory=dict)
    ip_addresses: dict[str, str] = field(default_factory=dict)
    emails: dict[str, str] = field(default_factory=dict)
    paths: dict[str, str] = field(default_factory=dict)

    def table(self, category: Category) -> dict[str, str]:
        """Return the live table for *category*."""
        return {
            Category.USER: self.usernames,
            Category.COMPUTER: self.computer_names,
            Category.IP: self.ip_addresses,
            Category.EMAIL: self.emails,
            Category.PATH: self.paths,
        }[category]

    def copy(self) -> "AnonymizationMapping":
        return AnonymizationMapping(
            usernames=dict(self.usernames),
            computer_names=dict(self.computer_names),
            ip_addresses=dict(self.ip_addresses),
            emails=dict(self.emails),
            paths=dict(self.paths),
        )

    def total_entries(self) -> int:
        return sum(len(self.table(category)) for category in Category)
