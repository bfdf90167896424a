from __future__ import annotations

import uvicorn

from brandkit_extractor.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run("brandkit_extractor.api.app:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
