"""Allow `python -m delayline` to run the CLI."""

import asyncio
import sys

from delayline.main import main

sys.exit(asyncio.run(main()))
