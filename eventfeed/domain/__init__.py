"""Event models, recurrence expansion and the feed orchestrator."""
