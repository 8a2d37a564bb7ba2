"""Core site logic: content corpus, builds and static file resolution."""
