# =============================================================================
# inbox-sync Entry Point for `python -m inbox_sync`
# =============================================================================
# Equivalent to running the 'inbox-sync' command after installation.
# =============================================================================

import sys

from inbox_sync.app import main

if __name__ == "__main__":
    sys.exit(main())
