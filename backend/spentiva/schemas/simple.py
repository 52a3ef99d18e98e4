# spentiva/schemas/simple.py
from typing import Dict

from pydantic import BaseModel


class Health(BaseModel):
    status: str
    timestamp: str
    uptime: float
    environment: str
    version: str
    checks: Dict[str, str]
