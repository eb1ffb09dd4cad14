"""Backend services for the single-election voting system."""
