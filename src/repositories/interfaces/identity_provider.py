from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


@dataclass(frozen=True)
class Identity:
    """외부 인증 시스템이 검증한 계정 정보"""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)


class IIdentityProvider(ABC):
    """인증 토큰 검증과 계정 관리를 담당하는 외부 인증 시스템"""

    @abstractmethod
    def verify_credential(self, token: str) -> Identity:
        """
        Bearer 토큰을 검증하고 해당 계정의 신원을 반환합니다.

        Raises:
            UnauthenticatedError: 토큰이 만료되었거나 유효하지 않을 때.
            InfrastructureError: 인증 시스템에 접근할 수 없을 때.
        """
        pass

    @abstractmethod
    def create_account(self, email: str, password: str) -> Identity:
        """이메일 인증이 완료된 상태로 새 계정을 생성합니다."""
        pass

    @abstractmethod
    def delete_account(self, user_id: str) -> None:
        """계정을 삭제합니다."""
        pass

    @abstractmethod
    def list_accounts(self) -> List[Identity]:
        """모든 계정 목록을 조회합니다."""
        pass

    @abstractmethod
    def update_account(self, user_id: str, password: Optional[str] = None,
                       user_metadata: Optional[Dict[str, Any]] = None) -> Identity:
        """계정의 비밀번호 또는 메타데이터를 변경합니다."""
        pass

    @abstractmethod
    def send_recovery_email(self, email: str) -> None:
        """비밀번호 재설정 메일을 발송합니다."""
        pass

    @abstractmethod
    def generate_recovery_link(self, email: str) -> str:
        """메일을 보내지 않고 비밀번호 재설정 링크만 생성해 반환합니다."""
        pass
