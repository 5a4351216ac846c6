"""Settlement, deployment and error handling for a single round cycle."""
