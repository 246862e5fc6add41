"""Budget management back office service."""
