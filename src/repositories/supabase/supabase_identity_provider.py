import json
import logging
from typing import List, Optional, Dict, Any

import httpx

from src import config
from src.repositories.interfaces import IIdentityProvider, Identity
from src.services.exceptions import (
    UnauthenticatedError, InfrastructureError, AccountNotFoundError, BadRequestError
)

logger = logging.getLogger(__name__)

class SupabaseIdentityProvider(IIdentityProvider):
    """
    호스팅 백엔드의 인증(Auth) REST API를 사용하는 IIdentityProvider 구현체입니다.

    토큰 검증은 일반 사용자 권한으로, 계정 관리(/admin/*)는 service role 키로 호출합니다.
    네트워크 오류나 5xx 응답은 InfrastructureError로 변환됩니다.
    """
    ACCOUNTS_PAGE_SIZE = 1000

    def __init__(self, base_url: Optional[str] = None, service_role_key: Optional[str] = None,
                 anon_key: Optional[str] = None, *, timeout: Optional[float] = None,
                 client: Optional[httpx.Client] = None):
        url = base_url or config.SUPABASE_URL
        service_key = service_role_key or config.SUPABASE_SERVICE_ROLE_KEY
        if not url or not service_key:
            raise InfrastructureError("Identity provider is not configured (SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)")

        self.auth_url = f"{url.rstrip('/')}/auth/v1"
        self.service_role_key = service_key
        self.anon_key = anon_key or config.SUPABASE_ANON_KEY or service_key
        self.client = client or httpx.Client(timeout=timeout or config.IDENTITY_TIMEOUT_SECONDS)

    # ------------------------------------------------------------------
    # 토큰 검증
    # ------------------------------------------------------------------

    def verify_credential(self, token: str) -> Identity:
        headers = {"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        response = self._send("GET", "/user", headers=headers)
        if response.status_code in (401, 403, 404, 422):
            raise UnauthenticatedError("Invalid or expired token")
        self._raise_for_status(response)
        return self._to_identity(self._json(response))

    # ------------------------------------------------------------------
    # 계정 관리 (service role)
    # ------------------------------------------------------------------

    def create_account(self, email: str, password: str) -> Identity:
        payload = {"email": email, "password": password, "email_confirm": True}
        response = self._admin("POST", "/admin/users", json=payload)
        if response.status_code in (400, 409, 422):
            raise BadRequestError(f"Failed to create user: {self._safe_extract_error(response)}")
        self._raise_for_status(response)
        return self._to_identity(self._json(response))

    def delete_account(self, user_id: str) -> None:
        response = self._admin("DELETE", f"/admin/users/{user_id}")
        if response.status_code == 404:
            raise AccountNotFoundError(f"Account '{user_id}' not found.")
        self._raise_for_status(response)

    def list_accounts(self) -> List[Identity]:
        accounts: List[Identity] = []
        page = 1
        while True:
            response = self._admin("GET", "/admin/users", params={"page": page, "per_page": self.ACCOUNTS_PAGE_SIZE})
            self._raise_for_status(response)
            data = self._json(response)
            users = data.get("users", []) if isinstance(data, dict) else data
            accounts.extend(self._to_identity(user) for user in users)
            if len(users) < self.ACCOUNTS_PAGE_SIZE:
                return accounts
            page += 1

    def update_account(self, user_id: str, password: Optional[str] = None,
                       user_metadata: Optional[Dict[str, Any]] = None) -> Identity:
        payload: Dict[str, Any] = {}
        if password is not None:
            payload["password"] = password
        if user_metadata is not None:
            payload["user_metadata"] = user_metadata
        response = self._admin("PUT", f"/admin/users/{user_id}", json=payload)
        if response.status_code == 404:
            raise AccountNotFoundError(f"Account '{user_id}' not found.")
        self._raise_for_status(response)
        return self._to_identity(self._json(response))

    def send_recovery_email(self, email: str) -> None:
        params = {"redirect_to": config.PASSWORD_RESET_REDIRECT_URL} if config.PASSWORD_RESET_REDIRECT_URL else None
        response = self._admin("POST", "/recover", json={"email": email}, params=params)
        self._raise_for_status(response)
        logger.info("Password recovery email requested for %s", email)

    def generate_recovery_link(self, email: str) -> str:
        payload: Dict[str, Any] = {"type": "recovery", "email": email}
        if config.PASSWORD_RESET_REDIRECT_URL:
            payload["redirect_to"] = config.PASSWORD_RESET_REDIRECT_URL
        response = self._admin("POST", "/admin/generate_link", json=payload)
        if response.status_code == 404:
            raise AccountNotFoundError(f"Account '{email}' not found.")
        self._raise_for_status(response)
        data = self._json(response)
        link = data.get("action_link") or (data.get("properties") or {}).get("action_link")
        if not link:
            raise InfrastructureError("Identity provider response missing 'action_link'")
        return link

    def close(self) -> None:
        self.client.close()

    # ------------------------------------------------------------------
    # 내부 유틸리티
    # ------------------------------------------------------------------

    def _admin(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"apikey": self.service_role_key, "Authorization": f"Bearer {self.service_role_key}"}
        return self._send(method, path, headers=headers, **kwargs)

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, f"{self.auth_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Identity provider request failed: %s %s: %s", method, path, exc)
            raise InfrastructureError(f"Failed to reach identity provider: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise InfrastructureError(
                f"Identity provider returned {response.status_code}: {self._safe_extract_error(response)}"
            )

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Identity provider returned a non-JSON body (status %s)", response.status_code)
            raise InfrastructureError("Identity provider returned an invalid response") from exc

    @staticmethod
    def _to_identity(user: Dict[str, Any]) -> Identity:
        # admin 엔드포인트는 {"user": {...}} 형태로 감싸서 응답하기도 합니다.
        if "user" in user and isinstance(user["user"], dict):
            user = user["user"]
        return Identity(id=user["id"], email=user.get("email"), user_metadata=user.get("user_metadata") or {})

    @staticmethod
    def _safe_extract_error(response: httpx.Response) -> str:
        try:
            data = response.json()
            if isinstance(data, dict):
                return data.get("msg") or data.get("error_description") or data.get("error") or json.dumps(data)
        except ValueError:
            pass
        return response.text
