# salesflow/schemas/crm.py

from pydantic import BaseModel


class TeamMember(BaseModel):
    """Сотрудник CRM в виде, удобном для интерфейса."""
    id: str
    name: str
    email: str = ""
