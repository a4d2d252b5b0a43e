"""Allow running as: python -m optical_quote"""

import sys

from optical_quote.main import run, run_expiration, serve

if __name__ == "__main__":
    if "--serve" in sys.argv:
        serve()
    elif "--expire" in sys.argv:
        run_expiration(dry_run="--dry-run" in sys.argv)
    else:
        run()
