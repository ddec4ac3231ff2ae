from __future__ import annotations

import os

import uvicorn


def main() -> None:
    host = os.getenv("AION_HOST", "0.0.0.0")
    port = int(os.getenv("AION_PORT", "8080"))
    uvicorn.run("aion.web_app:create_app", factory=True, host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
