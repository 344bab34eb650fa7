from dotenv import load_dotenv
load_dotenv()

from .apis.cli import main


def run() -> None:
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        print("\nAborted by user.")
        raise SystemExit(1)


if __name__ == "__main__":
    run()
