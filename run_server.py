import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("TAPESTRY_PORT", "8000"))

    print("Starting Tapestry API Server...")
    print(f"Docs available at: http://localhost:{port}/docs")

    uvicorn.run(
        "tapestry.api.server:create_app_from_env",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=False
    )
