"""Generation orchestration core."""
