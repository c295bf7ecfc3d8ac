# src/services/permissions.py
"""
역할(Role)과 권한 집합(CapabilitySet) 정의.

역할 이름은 하나의 표준 어휘(admin / editor / contributor / read_only)만 사용합니다.
과거 API가 쓰던 'Admin', 'Read Only', 'read_write' 같은 표기는 Role.parse()로만
변환해서 받아들입니다.
"""
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Optional, Dict

ALL_PROJECTS = "ALL"


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    CONTRIBUTOR = "contributor"
    READ_ONLY = "read_only"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """
        표준 또는 레거시 역할 문자열을 Role로 변환합니다.

        알 수 없는 값이면 예외 대신 None을 반환합니다. (권한 없음으로 취급)
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        return _ROLE_ALIASES.get(value.strip())


_ROLE_ALIASES: Dict[str, Role] = {
    "admin": Role.ADMIN,
    "Admin": Role.ADMIN,
    "editor": Role.EDITOR,
    "Editor": Role.EDITOR,
    "contributor": Role.CONTRIBUTOR,
    "Contributor": Role.CONTRIBUTOR,
    "read_write": Role.CONTRIBUTOR,
    "read_only": Role.READ_ONLY,
    "Read Only": Role.READ_ONLY,
}


@dataclass(frozen=True)
class CapabilitySet:
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_users: bool = False
    can_manage_projects: bool = False

    def allows(self, capability: str) -> bool:
        return bool(getattr(self, capability, False))

    def to_dict(self) -> Dict[str, bool]:
        """API 응답용 camelCase 표현 (canView, canCreate, ...)"""
        return {_camel_case(key): value for key, value in asdict(self).items()}


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


NO_CAPABILITIES = CapabilitySet()

ROLE_CAPABILITIES: Dict[Role, CapabilitySet] = {
    Role.ADMIN: CapabilitySet(
        can_view=True, can_create=True, can_edit=True, can_delete=True,
        can_manage_users=True, can_manage_projects=True,
    ),
    Role.EDITOR: CapabilitySet(
        can_view=True, can_create=True, can_edit=True, can_delete=False,
        can_manage_users=False, can_manage_projects=True,
    ),
    Role.CONTRIBUTOR: CapabilitySet(
        can_view=True, can_create=True, can_edit=True,
    ),
    Role.READ_ONLY: CapabilitySet(can_view=True),
}

CAPABILITIES = tuple(f.name for f in fields(CapabilitySet))


def resolve(role) -> CapabilitySet:
    """
    역할에 해당하는 권한 집합을 반환합니다.

    None이나 알 수 없는 역할 값은 모든 권한이 False인 집합이 됩니다.
    이 함수는 예외를 발생시키지 않습니다.
    """
    parsed = Role.parse(role)
    if parsed is None:
        return NO_CAPABILITIES
    return ROLE_CAPABILITIES.get(parsed, NO_CAPABILITIES)
