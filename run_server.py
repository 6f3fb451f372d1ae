import uvicorn

from dispatch.config import load_config

if __name__ == "__main__":
    server = load_config().server

    print("Starting Intent Dispatch API Server...")
    print(f"Docs available at: http://localhost:{server.port}/docs")

    uvicorn.run(
        "dispatch.api.server:app",
        host=server.host,
        port=server.port,
        reload=server.env == "development"
    )
