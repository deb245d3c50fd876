"""Client-side consumers of the inventory relay.

Learn: Two ways to keep a local inventory snapshot fresh:
1. StreamConsumer — listens to /api/v1/events and re-fetches on every push
2. Poller         — re-fetches on a fixed timer, no push needed

Both follow the same rule: the push or the tick only means "go re-read".
The fetched snapshot is the only thing that ever becomes local state.
"""

from slabrelay.client.polling import Poller
from slabrelay.client.stream import StreamConsumer, httpx_connector, httpx_fetcher

__all__ = ["Poller", "StreamConsumer", "httpx_connector", "httpx_fetcher"]
