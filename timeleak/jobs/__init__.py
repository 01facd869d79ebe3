"""Background jobs: durable work scheduler, daily sync scheduling, worker CLI."""
