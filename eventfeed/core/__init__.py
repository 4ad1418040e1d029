"""Infrastructure shared by the feed: clocks, HTTP clients, connectivity, config."""
