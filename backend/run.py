#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves app.main:app with auto-reload. Settings come from backend/.env or the
environment (DATABASE_URL, REDIS_URL, STRIPE_SECRET_KEY, JWT_SECRET_KEY).
"""
import os
from pathlib import Path
import sys

import uvicorn

# Add backend to path
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
