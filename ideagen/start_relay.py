#!/usr/bin/env python3
"""
Relay startup wrapper.
"""
import os
import sys

# Add workspace to path
workspace_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, workspace_root)

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

if __name__ == "__main__":
    print("[Relay] Starting idea stream relay")
    print(f"[Relay] Server: http://localhost:{PORT}/api/generate")
    print("[Relay] Press CTRL+C to stop")
    print()
    try:
        import uvicorn
        # Proxies must not buffer; uvicorn flushes each yielded frame
        uvicorn.run(
            "ideagen.main:app",
            host=HOST,
            port=PORT,
            reload=False,
            log_level="info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n[Relay] Shutting down...")
        sys.exit(0)
