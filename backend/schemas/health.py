from datetime import datetime
from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    articles_dir: str
    cache: str
    timestamp: datetime
