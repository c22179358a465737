"""Provider implementations for remote key-value services.

Each provider module exports a `Provider` class alias for the main provider class,
along with its credentials and params types.

Available providers:
- dynamodb: Amazon DynamoDB via boto3
"""

from dynapage.providers import dynamodb

__all__ = [
    "dynamodb",
]
