import logging
import os

from dotenv import load_dotenv

load_dotenv()

# Credentials for the Realtime app created in the Cloudflare dashboard
APP_ID = os.getenv("APPID", "")
APP_SECRET = os.getenv("APPSECRET", "")

REALTIME_BASE_URL = os.getenv("REALTIME_BASE_URL", "https://rtc.live.cloudflare.com/v1")
REALTIME_TIMEOUT_SEC = float(os.getenv("REALTIME_TIMEOUT_SEC", "10"))

# A peer that cannot take a broadcast frame within this window is dropped
BROADCAST_SEND_TIMEOUT_SEC = float(os.getenv("BROADCAST_SEND_TIMEOUT_SEC", "5"))

CORS_ORIGIN = os.getenv("CORS_ORIGIN", "*")

STATIC_DIR = os.getenv("STATIC_DIR", "client")
STATIC_INDEX = os.getenv("STATIC_INDEX", "cf-test.html")
ROBOTS_PATH = os.getenv("ROBOTS_PATH", "robots.txt")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

MISSING_CREDENTIALS_HINT = (
    "To run this server you must add a .env file in the server directory. "
    "It should contain variables APPID and APPSECRET, which you can obtain by "
    "creating a Realtime App in the Cloudflare dashboard."
)


def credentials_configured() -> bool:
    return bool(APP_ID and APP_SECRET)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
