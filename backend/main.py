import uvicorn
from backoffice.core.config import settings


def main():
    """Start the FastAPI backend server."""
    uvicorn.run("backoffice.main:app", host=settings.HOST, port=settings.PORT, reload=True)


if __name__ == "__main__":
    main()
