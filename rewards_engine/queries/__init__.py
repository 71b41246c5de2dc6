"""Query execution package."""

from rewards_engine.queries.executor import RewardQueryExecutor

__all__ = ["RewardQueryExecutor"]
