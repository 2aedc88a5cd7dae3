"""Terminal UI for Dictate2Me."""
