"""Production entry point for linkhub using uvicorn workers"""

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    PORT = int(os.getenv("PORT", "4000"))
    HOST = os.getenv("HOST", "127.0.0.1")
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
    WORKERS = int(os.getenv("WORKERS", "2"))

    print(f"Starting linkhub in {ENVIRONMENT} mode...")
    print(f"Host: {HOST}, Port: {PORT}, Workers: {WORKERS}")

    uvicorn.run(
        "linkhub_web.app:create_app",
        factory=True,
        host=HOST,
        port=PORT,
        workers=WORKERS if ENVIRONMENT == "production" else 1,
        log_level="info",
        access_log=True,
    )
