#!/usr/bin/env python3
import sys
from pathlib import Path

# Add the src directory to the Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    from page_assert.cli import main
    sys.exit(main())
