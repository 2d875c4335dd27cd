"""CloudWatch metrics capture."""
