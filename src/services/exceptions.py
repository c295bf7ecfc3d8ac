# src/services/exceptions.py

# --- Auth Exceptions ---
class UnauthenticatedError(Exception):
    """인증 헤더가 없거나, 토큰이 유효하지 않거나 만료되었을 때"""
    pass

class ForbiddenError(Exception):
    """인증은 되었지만 요청한 작업에 필요한 역할/권한이 없을 때"""
    pass

# --- Request Exceptions ---
class BadRequestError(Exception):
    """필수 파라미터(예: project)가 누락되었을 때"""
    pass

class ValidationError(Exception):
    """요청 본문의 필드 값이 허용 범위를 벗어났을 때"""
    pass

# --- Not Found Exceptions ---
class NotFoundError(Exception):
    """참조한 리소스가 없거나, 요청한 프로젝트에 속하지 않을 때"""
    pass

class StoryNotFoundError(NotFoundError):
    """스토리를 찾을 수 없을 때"""
    pass

class TaskNotFoundError(NotFoundError):
    """태스크를 찾을 수 없을 때"""
    pass

class DocumentNotFoundError(NotFoundError):
    """문서를 찾을 수 없을 때"""
    pass

class AccountNotFoundError(NotFoundError):
    """외부 인증 시스템에서 계정을 찾을 수 없을 때"""
    pass

# --- Infrastructure Exceptions ---
class InfrastructureError(Exception):
    """역할 저장소(DB) 또는 외부 인증 시스템에 접근할 수 없거나 오류가 발생했을 때"""
    pass
