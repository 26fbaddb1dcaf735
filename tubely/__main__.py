"""Run with `python -m tubely`."""
import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "tubely.main:app",
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8091")),
        proxy_headers=True,
    )
