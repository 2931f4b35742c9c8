"""Evidence aggregation for reports."""
