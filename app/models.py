"""Pydantic models for the OTP API."""

from datetime import datetime

from pydantic import BaseModel, Field


class OtpRequest(BaseModel):
    """Request a one-time code for a phone number."""
    phone_number: str = Field(..., description="Mobile number, 11 digits starting with 09")


class OtpVerifyRequest(BaseModel):
    """Submit a received code for verification."""
    phone_number: str = Field(..., description="Mobile number the code was issued for")
    code: str = Field(..., description="The 6-digit code")


class MessageResponse(BaseModel):
    """Plain status message."""
    message: str = Field(..., description="Human-readable status")


class OtpVerifyResponse(BaseModel):
    """Verification result."""
    verified: bool = Field(..., description="Whether the code matched the active one")
    message: str = Field(..., description="Human-readable status")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="ok when the store is reachable, degraded otherwise")
    version: str = Field(..., description="API version")
    store: str = Field(..., description="Store backend reachability: up or down")
    timestamp: datetime = Field(..., description="Server time")
