#!/usr/bin/env python3
"""
QuestionForge Service Entrypoint

This script determines which process to run based on the SERVICE_TYPE
environment variable.

SERVICE_TYPE values:
  - web (default): Run the FastAPI on-demand trigger via uvicorn
  - worker: Run the interval scheduler that processes pending jobs
  - once: Run a single processing pass and exit
"""

import os
import sys

SERVICE_TYPE = os.environ.get("SERVICE_TYPE", "web")
PORT = os.environ.get("PORT", "8080")

print("=" * 50)
print(f"QuestionForge Service: {SERVICE_TYPE}")
print("=" * 50)

if SERVICE_TYPE == "web":
    print("Starting web server (uvicorn)...")
    cmd = [
        "uvicorn", "questionforge.api.main:app",
        "--host", "0.0.0.0",
        "--port", PORT,
        "--timeout-keep-alive", "120",
    ]
elif SERVICE_TYPE == "worker":
    print("Starting question worker...")
    cmd = [sys.executable, "-m", "questionforge.jobs.run_worker"]
elif SERVICE_TYPE == "once":
    print("Running a single pass...")
    cmd = [sys.executable, "-m", "questionforge.jobs.run_worker", "--once"]
else:
    print(f"ERROR: Unknown SERVICE_TYPE: {SERVICE_TYPE}")
    print("Valid values: web, worker, once")
    sys.exit(1)

print(f"Running: {' '.join(cmd)}")
print("=" * 50)

# Replace this process with the actual command
os.execvp(cmd[0], cmd)
