"""
EC2 instance-type catalog builder.
Folds AWS bulk price-list versions and normalizes instance attributes.
"""

__version__ = "1.0.0"
