import sys

from linear_mcp.cli import main

sys.exit(main())
