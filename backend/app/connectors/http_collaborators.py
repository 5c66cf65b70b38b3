import httpx
import logging
from typing import Any, Dict, List, Optional

from app.connectors.base import EmailSender, GeneratedUpdate, UpdateGenerator

log = logging.getLogger(__name__)


class _HttpCollaborator:
    """Shared httpx plumbing for the formatting and email services."""

    service_name = "collaborator"

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 60.0):
        self.base_url = base_url.strip().rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            follow_redirects=True,
            timeout=timeout,
        )
        self.headers = {"Content-Type": "application/json"}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

        log.info(f"{self.service_name} client initialized with base URL: {self.base_url}")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not path.startswith("/"):
            path = f"/{path}"

        try:
            log.trace(f"{self.service_name} {method} {self.base_url}{path}")
            response = await self.client.request(method, path, headers=self.headers, **kwargs)
            log.trace(f"{self.service_name} response: {response.status_code}")
            response.raise_for_status()
            return response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = e.response.text[:300]
            log.error(f"{self.service_name} returned HTTP {status} for {method} {path}: {detail}")
            raise ValueError(f"{self.service_name} error (HTTP {status}): {detail}")
        except httpx.RequestError as e:
            log.error(f"{self.service_name} unreachable at {self.base_url}: {e}")
            raise ValueError(f"Cannot reach {self.service_name} at {self.base_url}: {e}")

    async def close(self) -> None:
        await self.client.aclose()


class HttpUpdateGenerator(_HttpCollaborator, UpdateGenerator):
    """Update generator backed by the formatting service's REST API."""

    service_name = "Update service"

    async def generate_update(
        self,
        owner_id: str,
        update_type: str,
        company_id: Optional[str],
        tag_ids: List[str],
        content: str,
    ) -> GeneratedUpdate:
        payload = {
            "owner_id": owner_id,
            "type": update_type,
            "company_id": company_id,
            "tag_ids": tag_ids,
            "content": content,
        }
        data = await self._request("POST", f"/updates/{update_type}", json=payload)
        update_id = data.get("id") or data.get("update_id")
        if not update_id:
            raise ValueError("Update service returned no update id")
        return GeneratedUpdate(
            update_id=str(update_id),
            formatted_output=data.get("formatted_output") or data.get("formattedOutput") or "",
        )


class HttpEmailSender(_HttpCollaborator, EmailSender):
    """Email sender backed by the mail service's REST API."""

    service_name = "Email service"

    async def send_update_email(self, update_id: str, recipients: List[str]) -> None:
        await self._request("POST", "/email/send", json={"update_id": update_id, "recipients": recipients})
        log.info(f"Email for update {update_id} sent to {len(recipients)} recipient(s)")
