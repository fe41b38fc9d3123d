"""Best bets indexer: expands curated categories into match records and
publishes them into a timestamped search index behind an alias."""

__version__ = "0.1.0"
