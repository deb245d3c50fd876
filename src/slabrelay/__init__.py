"""Slabrelay — live inventory updates for the slab fabrication dashboard.

Relays PostgreSQL change notifications on the inventory table to browser
and CLI clients over Server-Sent Events, and ships the client-side
consumers (stream + polling fallback) that keep a snapshot in sync.
"""

__version__ = "0.1.0"
