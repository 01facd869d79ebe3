"""TimeLeak screen-time aggregation and daily usage sync."""
