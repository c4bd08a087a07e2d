"""Concert-listing provider implementations.

    TicketmasterProvider  - Ticketmaster Discovery API v2 (requires
                            TICKETMASTER_API_KEY). Rate limit: 5 req/sec.
"""

from src.providers.event.ticketmaster_provider import TicketmasterProvider

__all__ = ["TicketmasterProvider"]
