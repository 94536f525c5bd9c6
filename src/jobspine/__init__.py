"""jobspine - cron job definitions kept in step with a live scheduling engine."""

__version__ = "0.1.0"
