from pydantic import BaseModel, ConfigDict, EmailStr, constr


class UserCreate(BaseModel):
    email: EmailStr
    password: constr(min_length=8)

class Token(BaseModel):
    access_token: str
    token_type: str

class Identity(BaseModel):
    """Who is calling. ``None`` in its place means anonymous."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
