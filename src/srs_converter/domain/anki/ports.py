"""
Ports (interfaces) for reading a vendor package.

The conversion core consumes these accessors; container, SQL and metadata
decoding live in infrastructure adapters that implement them.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO


class MemberNotFoundError(KeyError):
    """Raised when a requested archive member does not exist."""


class PackageSource(ABC):
    """
    Port for reading the members and tables of a vendor package.

    Implementations:
        - ApkgArchive: A validated .apkg staged in a working directory.
        - InMemorySource: Tables and members held in memory.
    """

    @abstractmethod
    def list_members(self) -> set[str]:
        """Names of every member in the container."""

    @abstractmethod
    def read_member(self, name: str) -> bytes:
        """
        Raw bytes of one member.

        Raises:
            MemberNotFoundError: if the member is absent.
        """

    @abstractmethod
    def query_all(self, table: str) -> list:
        """
        Typed rows of one vendor table, in table order.

        Args:
            table: One of ``VendorTable.ALL``.
        """

    @abstractmethod
    def media_mapping(self) -> dict[str, str]:
        """Mapping of member short id ("0", "1", ...) to media filename."""

    @abstractmethod
    def open_media_stream(self, filename: str) -> BinaryIO:
        """Open a media payload by its filename for reading."""
