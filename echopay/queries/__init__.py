"""Channel query package."""

from echopay.queries.channel import ChannelQuery

__all__ = ["ChannelQuery"]
