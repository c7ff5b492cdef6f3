#!/usr/bin/env python3
"""
Harvester Auto-Start Server
Starts the harvester API under uvicorn and keeps it running.
Also watches for .restart_flag to auto-restart the backend.
"""

import os
import signal
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path

HOST = os.environ.get('API_HOST', '0.0.0.0')
PORT = int(os.environ.get('API_PORT', '8000'))
BACKEND_DIR = Path(__file__).parent / 'backend'

# Global reference to backend process for restart
backend_process = None
backend_lock = threading.Lock()
shutdown_event = threading.Event()


def check_backend_running():
    """Check if something already listens on the API port"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        return sock.connect_ex(('localhost', PORT)) == 0


def ensure_browser_installed():
    """Install the Playwright Chromium build the scrapers drive"""
    print("Checking Playwright browser...")
    result = subprocess.run(
        [sys.executable, '-m', 'playwright', 'install', 'chromium'],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        print("⚠️  Warning: Could not install Chromium for Playwright")
        if result.stderr:
            print(f"   stderr: {result.stderr.strip()}")
        print("   Browser scrapes will fail until it is installed:")
        print(f"   {sys.executable} -m playwright install chromium")
        return False
    return True


def start_backend():
    """Start the FastAPI backend"""
    global backend_process

    print(f"Starting backend with: {sys.executable}")
    with backend_lock:
        backend_process = subprocess.Popen(
            [sys.executable, '-m', 'uvicorn', 'harvest_api.main:app', '--host', HOST, '--port', str(PORT)],
            cwd=str(BACKEND_DIR),
        )

    # Browser launches make the first start slow; allow up to 15s
    print("Waiting for backend to start...")
    for _ in range(30):
        if backend_process.poll() is not None:
            break
        if check_backend_running():
            print("✅ Backend started successfully!")
            return backend_process
        time.sleep(0.5)

    print("❌ Backend failed to start")
    return None


def stop_backend():
    """Stop the backend process"""
    global backend_process

    with backend_lock:
        if backend_process:
            print("🔄 Stopping backend...")
            backend_process.send_signal(signal.SIGINT)
            try:
                backend_process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                backend_process.kill()
            backend_process = None

            # Wait for port to be released
            for _ in range(10):
                if not check_backend_running():
                    break
                time.sleep(0.5)


def restart_backend():
    """Restart the backend server"""
    print("\n🔄 Restarting backend...")
    stop_backend()
    time.sleep(1)
    start_backend()
    print("✅ Backend restarted!")


def watch_restart_flag():
    """Watch for .restart_flag file and restart backend when it appears"""
    restart_flag = BACKEND_DIR / '.restart_flag'
    last_mtime = None

    # Remove any existing flag on startup
    restart_flag.unlink(missing_ok=True)

    while not shutdown_event.is_set():
        try:
            if restart_flag.exists():
                current_mtime = restart_flag.stat().st_mtime
                if last_mtime is None or current_mtime > last_mtime:
                    last_mtime = current_mtime
                    restart_flag.unlink(missing_ok=True)
                    restart_backend()
        except OSError as e:
            print(f"⚠️  Restart watcher error: {e}")
        time.sleep(1)


def main():
    print("=" * 50)
    print("  Harvester - Auto-Start Server")
    print("=" * 50)
    print()

    if check_backend_running():
        print(f"✅ Backend already running on http://localhost:{PORT}")
        return

    ensure_browser_installed()
    if not start_backend():
        print("\nFailed to start backend. Please check logs/backend.log")
        return

    watcher_thread = threading.Thread(target=watch_restart_flag, daemon=True)
    watcher_thread.start()

    print()
    print("=" * 50)
    print("  Harvester Ready!")
    print("=" * 50)
    print()
    print(f"  Backend API: http://localhost:{PORT}")
    print(f"  API Docs:    http://localhost:{PORT}/docs")
    print()
    print("  Auto-restart: Watching for backend/.restart_flag")
    print("  Press Ctrl+C to stop")
    print("=" * 50)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nShutting down...")
        shutdown_event.set()
        stop_backend()
        print("✅ Server stopped")


if __name__ == '__main__':
    main()
