import os
from .database import engine, SessionLocal, Base
from .models import *

def initialize_db(bootstrap_admin_user_id: str = None):
    """
    DB와 테이블을 생성하고, 필요하면 최초 관리자 역할을 삽입합니다.

    역할 테이블이 비어 있고 bootstrap_admin_user_id(또는 BOOTSTRAP_ADMIN_USER_ID 환경 변수)가
    주어지면, 해당 사용자에게 모든 프로젝트('ALL')에 대한 admin 역할을 부여합니다.
    사용자 계정 자체는 외부 인증 시스템에 이미 존재해야 합니다.
    """
    print("DB 초기화 중 (SQLAlchemy 사용)...")

    # 모든 테이블을 생성합니다. (이미 존재하면 생성하지 않음)
    Base.metadata.create_all(bind=engine)
    print("테이블 생성 완료.")

    admin_user_id = bootstrap_admin_user_id or os.getenv("BOOTSTRAP_ADMIN_USER_ID")
    if not admin_user_id:
        return

    db = SessionLocal()
    try:
        # 역할 데이터가 이미 있는지 확인
        if db.query(UserProjectRole).first():
            print("역할 데이터가 이미 존재합니다. 초기 관리자 등록을 건너뜁니다.")
            return

        db.add(UserProjectRole(user_id=admin_user_id, project="ALL", role="admin"))
        db.commit()
        print(f"초기 관리자 등록 완료: {admin_user_id} (ALL / admin)")

    except Exception as e:
        print(f"오류 발생: {e}")
        db.rollback()
    finally:
        db.close()

if __name__ == '__main__':
    initialize_db()
