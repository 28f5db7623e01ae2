from pydantic import BaseModel


class CallerContext(BaseModel):
    """Identity resolved from a bearer token; ``organization_id`` partitions every record query."""

    user_id: str
    organization_id: str
