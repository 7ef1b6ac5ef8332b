"""dealdesk: negotiation and settlement core for a software-project marketplace.

Subsystems live under :mod:`dealdesk.commerce`:

- offers: offer / counter-offer negotiation
- transactions: purchases held in escrow until release
- featured: time-limited featured placement of listings
"""

__version__ = "0.1.0"
