"""Pydantic models for request/response validation."""
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, validator

from voting_services.shared.models import get_current_timestamp


class CandidateRequest(BaseModel):
    """Candidate create/rename request model."""

    name: Optional[str] = Field(default=None, description="Candidate display name")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Eve Adams"
            }
        }


class VoteRequest(BaseModel):
    """Vote submission request model."""

    voterName: Optional[str] = Field(default=None, description="Voter name (case-insensitive, one vote each)")
    candidateId: Optional[int] = Field(default=None, description="Candidate identifier")

    @validator("voterName")
    def strip_voter_name(cls, v):
        """Trim surrounding whitespace from the voter name."""
        return v.strip() if isinstance(v, str) else v

    class Config:
        json_schema_extra = {
            "example": {
                "voterName": "Alice",
                "candidateId": 1
            }
        }


class PublishRequest(BaseModel):
    """Publish/unpublish results request model."""

    publish: bool = Field(default=False, description="True to publish, false to unpublish")


class LoginRequest(BaseModel):
    """Admin login request model."""

    username: str = Field(default="", description="Admin username")
    password: str = Field(default="", description="Admin password")


class CandidateResponse(BaseModel):
    """Candidate model."""

    id: int
    name: str
    position: int


class CandidateCreatedResponse(CandidateResponse):
    """Candidate creation response model."""

    message: str = "Candidate added successfully"


class CandidatesResponse(BaseModel):
    """Candidate list ordered by position."""

    candidates: list[CandidateResponse]


class MessageResponse(BaseModel):
    """Plain success message."""

    message: str


class VoteCreatedResponse(BaseModel):
    """Vote submission response model."""

    id: int = Field(..., description="Identifier of the stored vote")
    message: str = Field(default="Vote cast successfully")


class ResetResponse(BaseModel):
    """Vote reset response model."""

    message: str = "All votes reset successfully"
    deletedCount: int


class ResultItem(BaseModel):
    """Tally for one candidate."""

    id: int
    name: str
    position: int
    vote_count: int
    percentage: float


class ResultsResponse(BaseModel):
    """Election results response model."""

    results: list[ResultItem]
    totalVotes: int = Field(..., description="Total number of votes")
    winner: Optional[ResultItem] = Field(default=None, description="Sole leader, null when none or tied")
    tie: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "results": [
                    {"id": 1, "name": "Alice Johnson", "position": 1, "vote_count": 5, "percentage": 62.5},
                    {"id": 2, "name": "Bob Smith", "position": 2, "vote_count": 3, "percentage": 37.5}
                ],
                "totalVotes": 8,
                "winner": {"id": 1, "name": "Alice Johnson", "position": 1, "vote_count": 5, "percentage": 62.5},
                "tie": False
            }
        }


class VoterItem(BaseModel):
    """One cast vote as shown in the voters list."""

    voter_name: str
    candidate_name: str
    timestamp: datetime


class VotersResponse(BaseModel):
    """Voters list, most recent first."""

    voters: list[VoterItem]


class VoterCheckResponse(BaseModel):
    """Has-voted check response model."""

    hasVoted: bool


class PublishResponse(BaseModel):
    """Publish response model."""

    message: str
    published: bool


class SettingsPayload(BaseModel):
    """Boolean settings."""

    results_published: bool = False
    winner_announced: bool = False


class SettingsResponse(BaseModel):
    """Settings response model."""

    settings: SettingsPayload


class LoginResponse(BaseModel):
    """Admin login response model."""

    success: bool = True
    message: str = "Admin login successful"
    token: str
    token_type: str = "bearer"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=get_current_timestamp, description="Health check timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "services": {
                    "postgresql": "connected"
                },
                "timestamp": "2024-01-15T10:30:00"
            }
        }


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict = Field(default_factory=dict, description="Additional error details")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "ConflictError",
                "message": "You have already voted!",
                "details": {}
            }
        }
