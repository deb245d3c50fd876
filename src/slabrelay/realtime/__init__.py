"""Real-time infrastructure — Postgres LISTEN/NOTIFY + Server-Sent Events.

Learn: Events flow through two hops:
1. Inventory trigger → pg_notify('inventory_changes', …) (database-side)
2. Subscriber connection → StreamSession → SSE frame (one per client)

The push is only an invalidation hint. Clients always re-read the inventory
endpoint, which keeps them correct even when a push is lost.
"""
