from pydantic import BaseModel


class CollaboratorResponse(BaseModel):
    id: str
    name: str
    email: str
    is_admin: bool = False


class CreateCollaborator(BaseModel):
    name: str
    email: str
    password: str
    is_admin: bool = False
