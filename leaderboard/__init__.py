"""
Realtime leaderboard service package.

Serves ranked trader performance with a read-through cache, keeps it
fresh with a periodic refresher, and pushes freshness events to live
subscribers.

Subpackages:
- store: Ranked store over the PostgreSQL materialized view
- cache: Page cache keyed by query shape
- serving: Read path combining cache and store
- refresh: Refresh cycles and their schedule
- broadcast: Fan-out hub and live subscriber sessions
- ingestion: Trader performance feed and update loop
- apis: HTTP and websocket routes
"""

__version__ = "1.0.0"
