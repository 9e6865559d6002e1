"""
Base schema with UTC datetime serialization.

Timestamps are stored as naive UTC; UTCDatetime serializes them with a Z
suffix so clients do not read them as local time.
"""

from datetime import datetime
from typing import Annotated

from pydantic import PlainSerializer

# Usage: created_at: UTCDatetime instead of created_at: datetime
UTCDatetime = Annotated[
    datetime,
    PlainSerializer(
        lambda dt: dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else None,
        return_type=str,
    ),
]
