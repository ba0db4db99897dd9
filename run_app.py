import os

import uvicorn

from publicip.logger import log_config


def main() -> None:
    """Run the public IP service with uvicorn."""
    uvicorn.run(
        "publicip.main:app",
        host=os.getenv("PUBLICIP_HOST", "127.0.0.1"),
        port=int(os.getenv("PUBLICIP_PORT", "8000")),
        reload=os.getenv("PUBLICIP_RELOAD", "").lower() in ("1", "true", "yes"),
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
