from pydantic import BaseModel, Field


class AdminLogin(BaseModel):
    """Schema for admin dashboard login"""
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class Token(BaseModel):
    """Schema for JWT token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")


class AdminLoginResponse(BaseModel):
    success: bool = True
    token: Token
    username: str


class TokenData(BaseModel):
    """Schema for decoded token data"""
    username: str
    role: str
