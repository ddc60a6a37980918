"""Terminal status report."""
