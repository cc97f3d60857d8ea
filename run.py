"""Launch the GlassChat backend (FastAPI) for the desktop overlay."""
import os
import subprocess
import sys
from pathlib import Path


def main():
    root = Path(__file__).parent

    # Ensure data directory exists
    (root / "data").mkdir(parents=True, exist_ok=True)

    host = os.environ.get("GLASSCHAT_HOST", "127.0.0.1")
    port = os.environ.get("BACKEND_PORT", "8000")
    dev = os.environ.get("GLASSCHAT_DEV", "0") == "1"

    cmd = [
        sys.executable, "-m", "uvicorn", "glasschat.main:app",
        "--host", host, "--port", port,
    ]
    if dev:
        cmd.append("--reload")

    print(f"Starting backend (FastAPI) on http://{host}:{port} ...")
    backend = subprocess.Popen(cmd, cwd=str(root))

    try:
        backend.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        backend.terminate()
        backend.wait()


if __name__ == "__main__":
    main()
