"""Client-side synchronization core: cache, subscriptions, session and mutations."""
