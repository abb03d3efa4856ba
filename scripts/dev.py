import os
import sys
import uvicorn
from dotenv import load_dotenv

APPS = {
    "api": ("contentdesk.main:app", 8000),
    "realtime": ("contentdesk.realtime:app", 4001),
}

def main():
    target = sys.argv[1] if len(sys.argv) > 1 else "api"
    if target not in APPS:
        print(f"Usage: python scripts/dev.py [{'|'.join(APPS)}]")
        sys.exit(2)

    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
    dotenv_path = os.path.join(base_dir, '.env')
    print(f"Loading env from {dotenv_path}...")
    load_dotenv(dotenv_path)

    # Local HTTP has no TLS, so the session cookie must not be Secure-only
    os.environ.setdefault("COOKIE_SECURE", "false")

    db_url = os.environ.get("DATABASE_URL")
    print(f"DATABASE_URL: {db_url[:20]}..." if db_url else "DATABASE_URL: NOT SET (using local SQLite)")

    app_path, port = APPS[target]
    port = int(os.environ.get("PORT", port))
    print(f"Starting {target} at http://0.0.0.0:{port}")
    uvicorn.run(app_path, host="0.0.0.0", port=port, reload=False)

if __name__ == "__main__":
    main()
