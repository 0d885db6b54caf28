from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class MatchResponse(BaseModel):
    """Best match for the current user, or the no-match message alone."""
    match: str
    match_id: Optional[str] = Field(None, alias="matchId")
    match_top_artists: Optional[List[str]] = Field(None, alias="matchTopArtists")
    shared_artists: Optional[List[str]] = Field(None, alias="sharedArtists")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "match": "Jordan",
                "matchId": "spotify-user-42",
                "matchTopArtists": ["Radiohead", "Bjork", "Portishead"],
                "sharedArtists": ["Radiohead"]
            }
        }
    )


class TopArtistsResponse(BaseModel):
    items: List[str] = []
