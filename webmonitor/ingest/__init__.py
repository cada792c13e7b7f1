"""Page fetching and content extraction."""
