"""Run the FileGate server: python3 -m filegate"""

import uvicorn

from filegate.config import settings


def main() -> None:
    uvicorn.run("filegate.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
