from pydantic import BaseModel, Field
from typing import Optional, Union

class TrackingState(BaseModel):
    trip_id: str = Field(..., alias="tripId")
    lat: float
    lng: float
    speed: Optional[float] = None
    eta: Optional[Union[str, float]] = None
    updated_at: str = Field(..., alias="updatedAt")

    class Config:
        populate_by_name = True
