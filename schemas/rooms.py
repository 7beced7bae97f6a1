from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    connections: int
    rooms: int
