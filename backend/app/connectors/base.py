from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class GeneratedUpdate(BaseModel):
    """Result of the update-generation step."""
    update_id: str = Field(..., description="Identifier of the created daily/weekly update")
    formatted_output: str = Field("", description="Client-friendly formatted text of the update")


class UpdateGenerator(ABC):
    """Turns raw notes into a formatted daily update or weekly summary."""

    @abstractmethod
    async def generate_update(
        self,
        owner_id: str,
        update_type: str,
        company_id: Optional[str],
        tag_ids: List[str],
        content: str,
    ) -> GeneratedUpdate:
        """Creates the update. Raises on any failure."""
        pass


class EmailSender(ABC):
    """Delivers a generated update by email."""

    @abstractmethod
    async def send_update_email(self, update_id: str, recipients: List[str]) -> None:
        """Sends the update to every recipient. Raises on any failure."""
        pass
