# src/config.py
import os

from dotenv import load_dotenv

# 프로젝트 루트의 .env 파일이 있으면 환경 변수로 읽어옵니다.
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///bubbleup.db")

# 외부 인증(Identity Provider) 및 호스팅 백엔드 설정
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
PASSWORD_RESET_REDIRECT_URL = os.getenv("PASSWORD_RESET_REDIRECT_URL", "")
IDENTITY_TIMEOUT_SECONDS = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "10"))

APP_HOST = os.getenv("APP_HOST", "")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
