import uvicorn

from .config import get_settings


def main():
    settings = get_settings()
    uvicorn.run("topic2pptx.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
