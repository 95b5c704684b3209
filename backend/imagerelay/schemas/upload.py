"""
Pydantic schemas for upload and health endpoints.
"""
from pydantic import BaseModel, Field
from typing import Optional


class Base64UploadRequest(BaseModel):
    """Request schema for base64 image upload."""
    image: Optional[str] = Field(None, description="Data URL: data:<mime>;base64,<data>")
    filename: Optional[str] = Field(None, description="Optional base name for the stored file")

    class Config:
        json_schema_extra = {
            "example": {
                "image": "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD...",
                "filename": "profile.jpg"
            }
        }


class UploadedFile(BaseModel):
    """Details of a stored file."""
    filename: str
    originalname: Optional[str] = None
    mimetype: str
    size: int
    url: str


class UploadResponse(BaseModel):
    """Response schema for both upload endpoints."""
    success: bool = True
    message: str
    file: UploadedFile

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "File uploaded successfully",
                "file": {
                    "filename": "1647852369123-456789012.jpg",
                    "originalname": "profile.jpg",
                    "mimetype": "image/jpeg",
                    "size": 123456,
                    "url": "http://192.168.1.5:3000/uploads/1647852369123-456789012.jpg"
                }
            }
        }


class ErrorResponse(BaseModel):
    """Body returned for rejected uploads."""
    success: bool = False
    message: str
    error: Optional[str] = None


class HealthResponse(BaseModel):
    """Liveness response."""
    status: str = "ok"
    message: str = "Server is running"
    timestamp: str
