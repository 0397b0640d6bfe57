import sys
import logging
from typing import List, Optional

log = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    from .cli import main as cli_main

    try:
        return cli_main(argv)
    except ValueError as e:
        log.error(f"Error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
