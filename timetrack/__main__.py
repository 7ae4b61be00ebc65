"""Run the API with uvicorn: python -m timetrack"""
import uvicorn

from timetrack.config import HOST, PORT


def main():
    uvicorn.run("timetrack.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    main()
